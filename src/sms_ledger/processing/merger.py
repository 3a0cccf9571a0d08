"""Duplicate notification detection and merging."""

from dataclasses import replace
from datetime import timedelta

from sms_ledger.models.transaction import Transaction
from sms_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_MERGE_WINDOW = timedelta(minutes=10)


class Merger:
    """Collapses near-simultaneous duplicate notifications.

    A bank and a payment app often both report the same payment within
    seconds. Two transactions are duplicates when:
    - Amounts are equal
    - Directions are equal
    - The later one arrived within the window of the earlier one

    Channel and body are not compared: different senders guess different
    channels for the same payment. Two genuinely distinct payments with the
    same amount and direction inside the window are merged too; that is
    the accepted cost of this heuristic.

    The merged record keeps the earliest message's sms_id and date (stable
    across re-syncs) and the content of the longest body seen.
    """

    def __init__(self, window: timedelta = DEFAULT_MERGE_WINDOW):
        """Initialize merger.

        Args:
            window: Maximum arrival gap between duplicates (inclusive).
        """
        self.window = window

    def merge(self, transactions: list[Transaction]) -> list[Transaction]:
        """Merge duplicates in one sync batch.

        Input transactions are not modified; merged records are copies.

        Args:
            transactions: Classified transactions of one batch.

        Returns:
            Deduplicated transactions, ordered by arrival time.
        """
        if len(transactions) < 2:
            return list(transactions)

        # Stable sort: equal timestamps keep their input order
        ordered = sorted(transactions, key=lambda t: t.date)
        discarded = [False] * len(ordered)
        merged: list[Transaction] = []
        merge_count = 0

        for i, anchor in enumerate(ordered):
            if discarded[i]:
                continue

            representative = anchor
            absorbed: list[str] = list(anchor.merged_sms_ids)

            for j in range(i + 1, len(ordered)):
                candidate = ordered[j]
                if candidate.date - anchor.date > self.window:
                    break
                if discarded[j] or not self._are_duplicates(anchor, candidate):
                    continue

                discarded[j] = True
                merge_count += 1
                absorbed.append(candidate.sms_id)
                absorbed.extend(candidate.merged_sms_ids)
                if len(candidate.body) > len(representative.body):
                    representative = candidate

                logger.debug(
                    f"Merged {candidate.sms_id} into {anchor.sms_id} "
                    f"({anchor.direction.value} {anchor.amount})"
                )

            if absorbed == anchor.merged_sms_ids and representative is anchor:
                merged.append(anchor)
            else:
                merged.append(
                    replace(
                        representative,
                        sms_id=anchor.sms_id,
                        date=anchor.date,
                        merged_sms_ids=absorbed,
                    )
                )

        logger.info(
            f"Merged {merge_count} duplicate notifications, "
            f"{len(merged)}/{len(transactions)} transactions remain"
        )
        return merged

    def _are_duplicates(self, first: Transaction, second: Transaction) -> bool:
        """Check if two transactions describe the same payment.

        Args:
            first: Earlier transaction (the scan anchor).
            second: Later transaction.

        Returns:
            True if amount and direction are equal.
        """
        return first.amount == second.amount and first.direction == second.direction


def merge_transactions(
    transactions: list[Transaction],
    window: timedelta = DEFAULT_MERGE_WINDOW,
) -> list[Transaction]:
    """Convenience function to merge duplicate notifications.

    Args:
        transactions: Classified transactions of one batch.
        window: Maximum arrival gap between duplicates.

    Returns:
        Deduplicated transactions.
    """
    return Merger(window).merge(transactions)
