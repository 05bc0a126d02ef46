"""
json_repository.py
-------------------
Concrete subscription stores.

- JsonFileSubscriptionRepository: one JSON document on disk, records kept
  under the configured storage key.
- InMemorySubscriptionRepository: same contract, held in memory. For callers
  that must not touch disk (tests, throwaway runs). The dashboard and CLI use
  the JSON file store.
"""

import json
from pathlib import Path
from typing import Any, Dict, List

from config.config_loader import get_storage_config
from storage.base_repository import SubscriptionRepository


class JsonFileSubscriptionRepository(SubscriptionRepository):
    """
    Usage:
        repo = JsonFileSubscriptionRepository("subscriptions.json")
        repo.save_subscriptions(subscriptions)
        repo.load_subscriptions()
    """

    def __init__(self, path: str | Path | None = None, storage_key: str | None = None):
        config = get_storage_config()
        self.path = Path(path or config["default_path"])
        self.storage_key = storage_key or config["storage_key"]

    def _write_records(self, records: List[Dict[str, Any]]) -> None:
        document = self._read_document() if self.path.exists() else {}
        document[self.storage_key] = records
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")

    def _read_records(self) -> List[Dict[str, Any]] | None:
        if not self.path.exists():
            return None
        return self._read_document().get(self.storage_key)

    def _read_document(self) -> Dict[str, Any]:
        document = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(document, dict):
            raise ValueError(f"Expected a JSON object in {self.path}")
        return document

    def __repr__(self) -> str:
        return f"JsonFileSubscriptionRepository(path='{self.path}', key='{self.storage_key}')"


class InMemorySubscriptionRepository(SubscriptionRepository):

    def __init__(self):
        self._records: List[Dict[str, Any]] | None = None

    def _write_records(self, records: List[Dict[str, Any]]) -> None:
        # Stored as a JSON-compatible copy, same as the file store
        self._records = json.loads(json.dumps(records))

    def _read_records(self) -> List[Dict[str, Any]] | None:
        return self._records

    def __repr__(self) -> str:
        count = len(self._records) if self._records is not None else 0
        return f"InMemorySubscriptionRepository(records={count})"
