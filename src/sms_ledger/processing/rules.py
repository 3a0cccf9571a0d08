"""Ordered pattern tables used by the message classifiers.

Every classifier is a tuple of ``PatternRule(pattern, result)`` pairs that
is evaluated by ``first_match``: the first pattern that occurs in the text
decides the result. Tables are immutable values; a ``ClassifierRules``
bundle is built once (from defaults or settings.yaml) and passed into the
classifier, so classification itself holds no state.
"""

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from sms_ledger.models.transaction import Direction, Status
from sms_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Maximum pattern length to prevent overly complex patterns
MAX_PATTERN_LENGTH = 500

# Regex to detect nested quantifiers (catches (a+)+, ([a-z]+)*, (a+){2,}, etc.)
_NESTED_QUANTIFIER_PATTERN = re.compile(
    r'\([^)]*[+*?][^)]*\)[+*?]|'        # Nested +, *, ? quantifiers
    r'\([^)]*[+*?][^)]*\)\{[0-9,]+\}'   # Nested with {n,m} bounded quantifier
)

# Currency markers as they appear in the lowercase working copy
CURRENCY = r"(?:(?<![a-z])(?:rs\.?|inr)|₹)"
# Amount with optional thousands separators and up to two decimals
NUMBER = r"(\d+(?:,\d+)*(?:\.\d{1,2})?)(?!\d)"

DEFAULT_DENYLIST = (
    "offer",
    "cashback",
    "statement",
    "dues",
    "amount due",
    "reward",
    "congratulations",
    "discount",
)

DEFAULT_AMOUNT_KEYWORDS = (
    "debited by",
    "debited with",
    "credited with",
    "credited by",
    "payment of",
    "spent at",
    "spent",
    "paid",
    "withdrawn",
    "transferred",
    "deposited",
)

# Debit phrases are checked before credit phrases
DEFAULT_DEBIT_PATTERNS = (
    r"\bdebited\b",
    r"\bdebit\b(?!\s*card)",
    r"\bspent\b",
    r"\bwithdrawn\b",
    r"\bwithdrawal\b",
    r"\bpaid\b",
    r"\bsent\b",
    r"\bdeducted\b",
    r"\bpurchase\b",
    r"\bpayment of\b",
    r"\btransferred to\b",
    r"\bcharged\b",
)

DEFAULT_CREDIT_PATTERNS = (
    r"\bcredited\b",
    r"\bcredit\b(?!\s*card)",
    r"\breceived\b",
    r"\bdeposited\b",
    r"\badded\b",
    r"\brefunded\b",
    r"\btransferred from\b",
)

DEFAULT_CHANNEL_PATTERNS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "UPI",
        (
            r"\bupi\b",
            r"\b(?:google pay|gpay|phonepe|paytm|bhim|amazon pay)\b",
            # name@handle, but not an e-mail address such as alerts@bank.com
            r"\b[\w.\-]+@[a-z][a-z0-9]*\b(?!\.[a-z])",
        ),
    ),
    (
        "Card",
        (
            r"\b(?:credit|debit)\s+card\b",
            r"\bcard\s+(?:no\.?\s*)?(?:ending\s+(?:with\s+|in\s+)?)?[x*]*\d{4}\b",
            r"\bcard\s+ending\b",
            r"(?:[x*]{4}[\s-]?){3}\d{4}\b",
        ),
    ),
    (
        "Bank",
        (
            r"\ba/c\b",
            r"\bac\s+[x*]+\d+",
            r"\bacct\b",
            r"\baccount\s+(?:number|no\.?)",
            r"\b(?:neft|imps|rtgs)\b",
        ),
    ),
)

DEFAULT_FAILURE_PATTERNS = (
    r"\b(?:failed|reversed|refund(?:ed)?|unsuccessful|declined)\b",
)

DEFAULT_CHANNEL = "Other"


def is_safe_pattern(pattern: str) -> tuple[bool, str]:
    """Check if a regex pattern is safe from catastrophic backtracking.

    Args:
        pattern: Regex pattern string to validate.

    Returns:
        Tuple of (is_safe, reason if unsafe).
    """
    if len(pattern) > MAX_PATTERN_LENGTH:
        return False, f"Pattern exceeds {MAX_PATTERN_LENGTH} character limit"

    if _NESTED_QUANTIFIER_PATTERN.search(pattern):
        return False, "Pattern contains dangerous nested quantifier"

    return True, ""


@dataclass(frozen=True)
class PatternRule(Generic[T]):
    """A compiled pattern and the classification it stands for."""

    pattern: re.Pattern[str]
    result: T


def find_first(
    rules: Sequence[PatternRule[T]], text: str
) -> tuple[PatternRule[T], re.Match[str]] | None:
    """Find the first rule (in table order) whose pattern occurs in text.

    Args:
        rules: Ordered rule table.
        text: Text to search.

    Returns:
        Tuple of (rule, match) or None.
    """
    for rule in rules:
        match = rule.pattern.search(text)
        if match:
            return rule, match
    return None


def first_match(rules: Sequence[PatternRule[T]], text: str) -> T | None:
    """Return the result of the first matching rule, or None.

    Args:
        rules: Ordered rule table.
        text: Text to search.

    Returns:
        The matching rule's result, or None when nothing matches.
    """
    found = find_first(rules, text)
    return found[0].result if found else None


def safe_patterns(patterns: Iterable[object], label: str) -> list[str]:
    """Drop user-supplied patterns that could backtrack catastrophically.

    Args:
        patterns: Regex pattern strings from configuration.
        label: Table name, used in warnings.

    Returns:
        The safe patterns, in input order.
    """
    kept: list[str] = []
    for raw in patterns:
        pattern = str(raw)
        is_safe, reason = is_safe_pattern(pattern)
        if not is_safe:
            logger.warning(f"Rejecting unsafe pattern '{pattern}' in {label}: {reason}")
            continue
        kept.append(pattern)
    return kept


def compile_patterns(patterns: Iterable[str], label: str) -> list[re.Pattern[str]]:
    """Compile regex patterns, skipping invalid ones.

    Args:
        patterns: Regex pattern strings.
        label: Table name, used in warnings.

    Returns:
        Compiled case-insensitive patterns, in input order.
    """
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern, re.IGNORECASE))
        except re.error as e:
            logger.warning(f"Invalid pattern '{pattern}' in {label}: {e}")
    return compiled


def build_table(patterns: Iterable[str], result: T, label: str) -> tuple[PatternRule[T], ...]:
    """Compile patterns into rules that all share one result."""
    return tuple(PatternRule(p, result) for p in compile_patterns(patterns, label))


def build_amount_table(keywords: Sequence[str]) -> tuple[PatternRule[str], ...]:
    """Build the layered amount table.

    Layers, in order: currency marker then number, number then currency
    marker, then the keyword-anchored fallback. Each rule's result names
    its layer; the captured group 1 is the amount text.

    Args:
        keywords: Phrases that may directly precede an amount.

    Returns:
        Ordered amount rules.
    """
    rules: list[PatternRule[str]] = [
        PatternRule(re.compile(CURRENCY + r"\s*" + NUMBER), "currency_prefix"),
        PatternRule(
            re.compile(r"(?<![\w.,])" + NUMBER + r"\s*(?:(?:rs|inr)(?![a-z])|₹)"),
            "currency_suffix",
        ),
    ]

    phrases = [k.strip().lower() for k in keywords if k and k.strip()]
    if phrases:
        # Longest phrase first so "spent at" wins over "spent"
        phrases.sort(key=len, reverse=True)
        alternation = "|".join(r"\s+".join(map(re.escape, p.split())) for p in phrases)
        rules.append(
            PatternRule(
                re.compile(
                    r"\b(?:" + alternation + r")\b[\s:]*(?:" + CURRENCY + r")?\s*" + NUMBER
                ),
                "keyword",
            )
        )

    return tuple(rules)


@dataclass(frozen=True)
class ClassifierRules:
    """Immutable bundle of every table the classifier consults.

    Attributes:
        denylist: Lowercase terms that mark a message as promotional noise.
        amount: Layered amount extraction rules.
        direction: Debit rules followed by credit rules.
        channel: Channel rules in priority order.
        status: Failure rules; no match means success.
        default_channel: Channel used when no channel rule matches.
    """

    denylist: tuple[str, ...]
    amount: tuple[PatternRule[str], ...]
    direction: tuple[PatternRule[Direction], ...]
    channel: tuple[PatternRule[str], ...]
    status: tuple[PatternRule[Status], ...]
    default_channel: str = DEFAULT_CHANNEL

    @property
    def channel_names(self) -> tuple[str, ...]:
        """Every label the channel classifier can produce."""
        names: list[str] = []
        for rule in self.channel:
            if rule.result not in names:
                names.append(rule.result)
        if self.default_channel not in names:
            names.append(self.default_channel)
        return tuple(names)

    @classmethod
    def build(
        cls,
        denylist: Iterable[str] = DEFAULT_DENYLIST,
        amount_keywords: Sequence[str] = DEFAULT_AMOUNT_KEYWORDS,
        debit_patterns: Iterable[str] = DEFAULT_DEBIT_PATTERNS,
        credit_patterns: Iterable[str] = DEFAULT_CREDIT_PATTERNS,
        channel_patterns: Iterable[tuple[str, Iterable[str]]] = DEFAULT_CHANNEL_PATTERNS,
        failure_patterns: Iterable[str] = DEFAULT_FAILURE_PATTERNS,
        default_channel: str = DEFAULT_CHANNEL,
    ) -> "ClassifierRules":
        """Compile a rule bundle from plain pattern lists.

        Args:
            denylist: Noise terms (plain substrings, any case).
            amount_keywords: Phrases for the keyword-anchored amount layer.
            debit_patterns: Regexes indicating a debit.
            credit_patterns: Regexes indicating a credit.
            channel_patterns: Ordered (channel, regexes) pairs.
            failure_patterns: Regexes indicating a failed transaction.
            default_channel: Fallback channel label.

        Returns:
            A compiled ClassifierRules.
        """
        channel_rules: list[PatternRule[str]] = []
        for channel_name, patterns in channel_patterns:
            channel_rules.extend(build_table(patterns, channel_name, f"channel '{channel_name}'"))

        return cls(
            denylist=tuple(t.strip().lower() for t in denylist if t and t.strip()),
            amount=build_amount_table(amount_keywords),
            direction=(
                build_table(debit_patterns, Direction.DEBIT, "debit patterns")
                + build_table(credit_patterns, Direction.CREDIT, "credit patterns")
            ),
            channel=tuple(channel_rules),
            status=build_table(failure_patterns, Status.FAILED, "failure patterns"),
            default_channel=default_channel,
        )

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "ClassifierRules":
        """Create from the ``classifier`` section of settings.yaml.

        Any key that is present replaces the corresponding default table
        entirely; missing keys keep the defaults. Configured regexes are
        screened with is_safe_pattern before compiling.

        Args:
            data: Dictionary of classifier settings.

        Returns:
            A compiled ClassifierRules.

        Raises:
            ValueError: If a section has the wrong shape.
        """

        def pattern_list(key: str, default: Iterable[str]) -> list[str]:
            value = data.get(key)
            if value is None:
                return list(default)
            if not isinstance(value, list):
                raise ValueError(f"'{key}' must be a list, got {type(value).__name__}")
            return safe_patterns(value, key)

        channel_patterns: Iterable[tuple[str, Iterable[str]]] = DEFAULT_CHANNEL_PATTERNS
        if data.get("channels") is not None:
            channels = data["channels"]
            if not isinstance(channels, list):
                raise ValueError(f"'channels' must be a list, got {type(channels).__name__}")
            configured: list[tuple[str, list[str]]] = []
            for entry in channels:
                if not isinstance(entry, dict) or "channel" not in entry:
                    raise ValueError(f"Channel entry needs a 'channel' key: {entry!r}")
                name = str(entry["channel"])
                configured.append(
                    (name, safe_patterns(entry.get("patterns") or [], f"channel '{name}'"))
                )
            channel_patterns = configured

        denylist = data.get("denylist")
        if denylist is not None and not isinstance(denylist, list):
            raise ValueError(f"'denylist' must be a list, got {type(denylist).__name__}")
        amount_keywords = data.get("amount_keywords")
        if amount_keywords is not None and not isinstance(amount_keywords, list):
            raise ValueError(
                f"'amount_keywords' must be a list, got {type(amount_keywords).__name__}"
            )

        return cls.build(
            denylist=[str(t) for t in denylist] if denylist is not None else DEFAULT_DENYLIST,
            amount_keywords=(
                [str(k) for k in amount_keywords]
                if amount_keywords is not None
                else DEFAULT_AMOUNT_KEYWORDS
            ),
            debit_patterns=pattern_list("debit_patterns", DEFAULT_DEBIT_PATTERNS),
            credit_patterns=pattern_list("credit_patterns", DEFAULT_CREDIT_PATTERNS),
            channel_patterns=channel_patterns,
            failure_patterns=pattern_list("failure_patterns", DEFAULT_FAILURE_PATTERNS),
            default_channel=str(data.get("default_channel") or DEFAULT_CHANNEL),
        )


DEFAULT_RULES = ClassifierRules.build()
