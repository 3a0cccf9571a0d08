"""Transaction processing pipeline components."""

from sms_ledger.processing.normalizer import (
    Normalizer,
    normalize_messages,
)
from sms_ledger.processing.amount_extractor import extract_amount
from sms_ledger.processing.classifier import (
    Classifier,
    classify_messages,
)
from sms_ledger.processing.merger import (
    DEFAULT_MERGE_WINDOW,
    Merger,
    merge_transactions,
)
from sms_ledger.processing.mapper import (
    SourceMapper,
    apply_mapping,
    remap,
)
from sms_ledger.processing.pipeline import (
    SyncPipeline,
    SyncResult,
    build_upsert_ops,
    classify,
    merge,
)
from sms_ledger.processing.rules import (
    DEFAULT_RULES,
    ClassifierRules,
    first_match,
)

__all__ = [
    "Normalizer",
    "normalize_messages",
    "extract_amount",
    "Classifier",
    "classify_messages",
    "DEFAULT_MERGE_WINDOW",
    "Merger",
    "merge_transactions",
    "SourceMapper",
    "apply_mapping",
    "remap",
    "SyncPipeline",
    "SyncResult",
    "build_upsert_ops",
    "classify",
    "merge",
    "DEFAULT_RULES",
    "ClassifierRules",
    "first_match",
]
