"""Source-mapping resolver and remap operation."""

from collections.abc import Sequence
from dataclasses import replace
from typing import Any, Optional

from sms_ledger.models.mapping import MappingRule
from sms_ledger.models.operations import UpdateOp
from sms_ledger.models.transaction import PersistedTransaction, Transaction
from sms_ledger.processing.rules import DEFAULT_CHANNEL
from sms_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

# Synthetic smsId prefix of transactions entered by hand
DEFAULT_MANUAL_ID_PREFIX = "manual-"


class SourceMapper:
    """Applies user mapping rules to transactions.

    Rules are evaluated in the order given; the first rule with a match
    string contained in the body (case-insensitive) wins. A match replaces
    the channel with the rule's name and attaches its account type. The
    source label is never touched.
    """

    def __init__(self, rules: Sequence[MappingRule]):
        """Initialize mapper.

        Args:
            rules: The user's mapping rules, in priority order.
        """
        self.rules = tuple(rules)

    def resolve(self, body: str) -> Optional[MappingRule]:
        """Find the first rule matching a body.

        Args:
            body: Transaction body.

        Returns:
            Matching MappingRule or None.
        """
        for rule in self.rules:
            matched = rule.match(body)
            if matched is not None:
                logger.debug(f"Mapping '{rule.mapping_name}' matched on '{matched}'")
                return rule
        return None

    def apply(self, transactions: list[Transaction]) -> list[Transaction]:
        """Apply the rules to a batch of transactions.

        Args:
            transactions: Merged transactions.

        Returns:
            New list; mapped transactions are copies, others unchanged.
        """
        mapped_count = 0
        result = []

        for txn in transactions:
            rule = self.resolve(txn.body)
            if rule is None:
                result.append(txn)
                continue
            mapped_count += 1
            result.append(
                replace(txn, channel=rule.mapping_name, account_type=rule.account_type)
            )

        logger.info(f"Mapped {mapped_count}/{len(transactions)} transactions")
        return result

    def remap(
        self,
        persisted: list[PersistedTransaction],
        user_id: Optional[str] = None,
        manual_id_prefix: str = DEFAULT_MANUAL_ID_PREFIX,
        default_channel: str = DEFAULT_CHANNEL,
    ) -> list[UpdateOp]:
        """Re-apply the current rules to already stored transactions.

        For every stored transaction:
        - a matching rule sets channel and account type
        - with no match, manual entries are left alone
        - with no match, previously mapped entries go back to the default
          channel and lose their account type

        A transaction counts as previously mapped when it carries an
        account type; only mapping rules attach one. Operations are only
        emitted for documents that would change, so running remap again
        on the result yields nothing. Documents whose owner is unknown
        are skipped.

        Args:
            persisted: All stored transactions of one user.
            user_id: Owner id for the operation filter. Falls back to the
                document's own userId.
            manual_id_prefix: smsId prefix marking manual entries.
            default_channel: Channel restored when a mapping goes away.

        Returns:
            Update operations, in input order.
        """
        operations: list[UpdateOp] = []
        reset_count = 0
        manual_skipped = 0
        ownerless = 0

        for txn in persisted:
            key = self._key(txn, user_id)
            if key is None:
                ownerless += 1
                continue
            rule = self.resolve(txn.body)

            if rule is not None:
                if txn.channel != rule.mapping_name or txn.account_type != rule.account_type:
                    operations.append(
                        UpdateOp(
                            filter=key,
                            set_fields={
                                "channel": rule.mapping_name,
                                "accountType": rule.account_type,
                            },
                        )
                    )
                continue

            if txn.sms_id.startswith(manual_id_prefix):
                manual_skipped += 1
                continue

            if txn.account_type is not None:
                reset_count += 1
                operations.append(
                    UpdateOp(
                        filter=key,
                        set_fields={"channel": default_channel},
                        unset_fields=("accountType",),
                    )
                )

        if ownerless:
            logger.warning(f"Skipped {ownerless} stored transactions without a userId")
        logger.info(
            f"Remap produced {len(operations)} updates for {len(persisted)} transactions "
            f"({reset_count} reset to '{default_channel}', {manual_skipped} manual untouched)"
        )
        return operations

    @staticmethod
    def _key(txn: PersistedTransaction, user_id: Optional[str]) -> Optional[dict[str, Any]]:
        owner = user_id if user_id is not None else txn.document.get("userId")
        if not owner:
            return None
        return {"userId": owner, "smsId": txn.sms_id}


def apply_mapping(
    transactions: list[Transaction],
    rules: Sequence[MappingRule],
) -> list[Transaction]:
    """Convenience function to apply mapping rules.

    Args:
        transactions: Merged transactions.
        rules: Mapping rules in priority order.

    Returns:
        Transactions with channels renamed where a rule matched.
    """
    return SourceMapper(rules).apply(transactions)


def remap(
    persisted: list[PersistedTransaction],
    rules: Sequence[MappingRule],
    user_id: Optional[str] = None,
    manual_id_prefix: str = DEFAULT_MANUAL_ID_PREFIX,
    default_channel: str = DEFAULT_CHANNEL,
) -> list[UpdateOp]:
    """Convenience function to remap stored transactions.

    Args:
        persisted: All stored transactions of one user.
        rules: Current mapping rules in priority order.
        user_id: Owner id for the operation filter.
        manual_id_prefix: smsId prefix marking manual entries.
        default_channel: Channel restored when a mapping goes away.

    Returns:
        Update operations.
    """
    return SourceMapper(rules).remap(
        persisted,
        user_id=user_id,
        manual_id_prefix=manual_id_prefix,
        default_channel=default_channel,
    )
