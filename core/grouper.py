"""
grouper.py
-----------
Partitions expense transactions by normalized recipient name.

Income (amount >= 0) is never a subscription candidate and is dropped here.
Groups keep encounter order; the detector sorts each group by date itself.
"""

from typing import Dict, Iterable, List

from core.models import Transaction
from core.normalizer import RecipientNameNormalizer, normalize_recipient_name


def group_by_recipient(
    transactions: Iterable[Transaction],
    normalizer: RecipientNameNormalizer | None = None,
) -> Dict[str, List[Transaction]]:
    """
    Group expense transactions by merchant key.

    Args:
        transactions: Any iterable of transactions, in any order.
        normalizer: Optional normalizer instance. Defaults to the config-backed one.

    Returns:
        Dict of merchant key -> transactions, in first-seen order.
    """
    normalize = normalizer.normalize if normalizer is not None else normalize_recipient_name
    groups: Dict[str, List[Transaction]] = {}

    for transaction in transactions:
        if transaction.amount >= 0:
            continue

        recipient_name = normalize(transaction.description)
        if not recipient_name:
            continue

        groups.setdefault(recipient_name, []).append(transaction)

    return groups
