"""
base_repository.py
-------------------
Abstract persistence port for confirmed subscriptions.

The detection engine never touches storage. Callers (CLI, dashboard) receive
a repository and decide when to save. Shared (de)serialization lives here so
concrete repositories only implement the raw read/write of records.

Contract:
    - save_subscriptions() returns True on success, False on failure.
    - load_subscriptions() returns [] when nothing is stored or on failure.
    - Failures are logged, never raised to the caller.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List

from core.models import Subscription

logger = logging.getLogger(__name__)

DATE_FIELDS = ("created_at", "next_expected_date")


def subscription_to_record(subscription: Subscription) -> Dict[str, Any]:
    """Plain dict with dates as ISO-8601 strings."""
    record = asdict(subscription)
    for name in DATE_FIELDS:
        value = record.get(name)
        record[name] = value.isoformat() if isinstance(value, datetime) else value
    return record


def subscription_from_record(record: Dict[str, Any]) -> Subscription:
    data = dict(record)
    for name in DATE_FIELDS:
        value = data.get(name)
        data[name] = datetime.fromisoformat(value) if value else None
    if data["created_at"] is None:
        raise ValueError(f"Subscription record {data.get('id')!r} has no created_at")
    data["transaction_ids"] = list(data.get("transaction_ids") or [])
    return Subscription(**data)


class SubscriptionRepository(ABC):
    """
    Abstract base for subscription stores.

    Subclasses implement _write_records() and _read_records().
    """

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def save_subscriptions(self, subscriptions: List[Subscription]) -> bool:
        try:
            self._write_records([subscription_to_record(s) for s in subscriptions])
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save subscriptions: {e}")
            return False
        logger.info(f"Saved {len(subscriptions)} subscriptions to {self!r}.")
        return True

    def load_subscriptions(self) -> List[Subscription]:
        try:
            records = self._read_records()
            if not records:
                return []
            return [subscription_from_record(r) for r in records]
        except (OSError, TypeError, ValueError, KeyError) as e:
            logger.error(f"Failed to load subscriptions: {e}")
            return []

    # -------------------------------------------------------------------------
    # ABSTRACT METHODS — Implement in each store
    # -------------------------------------------------------------------------

    @abstractmethod
    def _write_records(self, records: List[Dict[str, Any]]) -> None:
        """Persist serialized records, replacing whatever was stored."""
        ...

    @abstractmethod
    def _read_records(self) -> List[Dict[str, Any]] | None:
        """Return stored records, or None if nothing has been stored."""
        ...
