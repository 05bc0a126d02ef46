"""
test_subscriptions.py
----------------------
Tests for everything downstream of detection.

Run from the project root:
    python -m pytest tests/test_subscriptions.py -v

Tests are organized by layer:
    - Subscription helpers (confirmation, marking, cost roll-ups, labels)
    - Subscription stores (JSON file, in-memory)
    - Command-line entry point
    - Dashboard helpers
"""

import inspect
import sys
import os
import json
import pytest
import pandas as pd
from datetime import datetime

# Ensure the project root is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from config.config_loader import reset_config
from core.models import Badge, Subscription, Transaction
from core.subscription_detector import detect_subscriptions
from core.subscriptions import (
    billing_day_label, billing_frequency_label, calculate_monthly_subscription_cost, create_subscription,
    group_subscriptions_by_subcategory, mark_transactions_as_recurring, mark_transactions_as_subscriptions,
)
from storage.base_repository import subscription_from_record, subscription_to_record
from storage.json_repository import InMemorySubscriptionRepository, JsonFileSubscriptionRepository
from main import main
from pipeline import SubscriptionPipeline


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def reset_config_cache():
    """Clears config cache before each test for isolation."""
    reset_config()
    yield
    reset_config()


def _make_monthly_txns(description: str, amount: float, months: int, **kwargs) -> list[Transaction]:
    start = pd.Timestamp(2024, 1, 15)
    return [
        Transaction(
            id=f"tx-{description}-{i}",
            date=(start + pd.DateOffset(months=i)).to_pydatetime(),
            amount=amount,
            description=description,
            **kwargs,
        )
        for i in range(months)
    ]


@pytest.fixture
def detected_netflix():
    txns = _make_monthly_txns("NETFLIX", -149, 4, category_id="ent", subcategory_id="streaming")
    return detect_subscriptions(txns)[0]


def _subscription(name: str, amount: float, frequency: str = "monthly", is_active: bool = True,
                  subcategory_id: str | None = None) -> Subscription:
    return Subscription(
        id=f"sub-{name}",
        name=name,
        amount=amount,
        billing_day=1,
        recurring_type="subscription",
        category_id=None,
        subcategory_id=subcategory_id,
        created_at=datetime(2024, 6, 1, 9, 30),
        is_active=is_active,
        billing_frequency=frequency,
    )


# =============================================================================
# SUBSCRIPTION HELPER TESTS
# =============================================================================

class TestCreateSubscription:
    def test_defaults_to_subscription_type(self, detected_netflix):
        created_at = datetime(2024, 6, 1, 12, 0)
        sub = create_subscription(detected_netflix, created_at=created_at)
        assert sub.id == detected_netflix.id
        assert sub.name == "Netflix"
        assert sub.amount == 149.0
        assert sub.billing_day == 15
        assert sub.recurring_type == "subscription"
        assert sub.category_id == "ent"
        assert sub.subcategory_id == "streaming"
        assert sub.transaction_ids == list(detected_netflix.transaction_ids)
        assert sub.created_at == created_at
        assert sub.is_active is True
        assert sub.next_expected_date == datetime(2024, 5, 15)

    def test_recurring_expense(self, detected_netflix):
        sub = create_subscription(detected_netflix, recurring_type="recurring_expense")
        assert sub.recurring_type == "recurring_expense"

    def test_unknown_type_raises(self, detected_netflix):
        with pytest.raises(ValueError, match="Unknown recurring type"):
            create_subscription(detected_netflix, recurring_type="lease")


class TestMarkTransactions:
    def test_marks_only_listed_transactions(self):
        txns = _make_monthly_txns("NETFLIX", -149, 2) + _make_monthly_txns("RENT", -9000, 1)
        marked = mark_transactions_as_recurring(
            txns, {"tx-NETFLIX-0": "subscription", "tx-RENT-0": "recurring_expense"}
        )
        by_id = {t.id: t for t in marked}
        assert by_id["tx-NETFLIX-0"].is_subscription is True
        assert by_id["tx-NETFLIX-0"].badges == (Badge("subscription", "Subscription"),)
        assert by_id["tx-RENT-0"].badges == (Badge("fixed", "Fixed"),)
        assert by_id["tx-NETFLIX-1"].is_subscription is False
        assert by_id["tx-NETFLIX-1"].badges == ()
        # Inputs are untouched
        assert all(not t.is_subscription for t in txns)

    def test_badge_not_duplicated(self):
        txns = _make_monthly_txns("NETFLIX", -149, 1)
        once = mark_transactions_as_subscriptions(txns, ["tx-NETFLIX-0"])
        twice = mark_transactions_as_subscriptions(once, ["tx-NETFLIX-0"])
        assert len(twice[0].badges) == 1


class TestCostAndLabels:
    def test_monthly_cost_normalizes_cadence(self):
        subs = [
            _subscription("gym", 10.0, "weekly"),
            _subscription("insurance", 120.0, "annual"),
            _subscription("old", 500.0, "monthly", is_active=False),
        ]
        assert calculate_monthly_subscription_cost(subs) == 53.33

    def test_monthly_cost_empty(self):
        assert calculate_monthly_subscription_cost([]) == 0

    def test_group_by_subcategory(self):
        subs = [
            _subscription("netflix", 149, subcategory_id="streaming"),
            _subscription("hbo", 99, subcategory_id="streaming"),
            _subscription("gym", 399),
        ]
        groups = group_subscriptions_by_subcategory(subs)
        assert [s.name for s in groups["streaming"]] == ["netflix", "hbo"]
        assert [s.name for s in groups[None]] == ["gym"]

    def test_labels(self):
        assert billing_frequency_label("biweekly") == "Bi-weekly"
        assert billing_frequency_label("annual") == "Annual"
        assert billing_day_label(0, "weekly") == "Mon"
        assert billing_day_label(6, "biweekly") == "Sun"
        assert billing_day_label(15, "monthly") == "Day 15"


# =============================================================================
# STORAGE TESTS
# =============================================================================

class TestRecords:
    def test_dates_serialized_as_iso_strings(self, detected_netflix):
        sub = create_subscription(detected_netflix, created_at=datetime(2024, 6, 1, 12, 0))
        record = subscription_to_record(sub)
        assert record["created_at"] == "2024-06-01T12:00:00"
        assert record["next_expected_date"] == "2024-05-15T00:00:00"
        assert subscription_from_record(record) == sub

    def test_missing_created_at_raises(self):
        record = subscription_to_record(_subscription("gym", 10.0))
        record["created_at"] = None
        with pytest.raises(ValueError):
            subscription_from_record(record)


class TestJsonFileRepository:
    def test_round_trip(self, tmp_path, detected_netflix):
        repo = JsonFileSubscriptionRepository(tmp_path / "subs.json")
        subs = [create_subscription(detected_netflix), _subscription("gym", 10.0, "weekly")]
        assert repo.save_subscriptions(subs) is True
        assert repo.load_subscriptions() == subs

    def test_records_stored_under_storage_key(self, tmp_path):
        path = tmp_path / "subs.json"
        JsonFileSubscriptionRepository(path).save_subscriptions([_subscription("gym", 10.0)])
        document = json.loads(path.read_text(encoding="utf-8"))
        assert list(document) == ["confirmed_subscriptions"]
        assert document["confirmed_subscriptions"][0]["name"] == "gym"

    def test_other_keys_preserved(self, tmp_path):
        path = tmp_path / "subs.json"
        path.write_text(json.dumps({"settings": {"theme": "dark"}}), encoding="utf-8")
        JsonFileSubscriptionRepository(path).save_subscriptions([_subscription("gym", 10.0)])
        document = json.loads(path.read_text(encoding="utf-8"))
        assert document["settings"] == {"theme": "dark"}

    def test_missing_file_loads_empty(self, tmp_path):
        assert JsonFileSubscriptionRepository(tmp_path / "absent.json").load_subscriptions() == []

    def test_corrupted_file_loads_empty(self, tmp_path, caplog):
        path = tmp_path / "subs.json"
        path.write_text("{not json", encoding="utf-8")
        assert JsonFileSubscriptionRepository(path).load_subscriptions() == []
        assert "Failed to load subscriptions" in caplog.text

    def test_non_object_document_loads_empty(self, tmp_path):
        path = tmp_path / "subs.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        assert JsonFileSubscriptionRepository(path).load_subscriptions() == []

    def test_unwritable_path_returns_false(self, tmp_path, caplog):
        # A directory cannot be read or written as a file
        repo = JsonFileSubscriptionRepository(tmp_path)
        assert repo.save_subscriptions([_subscription("gym", 10.0)]) is False
        assert "Failed to save subscriptions" in caplog.text

    def test_empty_list_round_trip(self, tmp_path):
        repo = JsonFileSubscriptionRepository(tmp_path / "subs.json")
        assert repo.save_subscriptions([]) is True
        assert repo.load_subscriptions() == []


class TestInMemoryRepository:
    def test_round_trip(self, detected_netflix):
        repo = InMemorySubscriptionRepository()
        assert repo.load_subscriptions() == []
        subs = [create_subscription(detected_netflix)]
        assert repo.save_subscriptions(subs) is True
        loaded = repo.load_subscriptions()
        assert loaded == subs
        assert loaded[0] is not subs[0]


# =============================================================================
# CLI TESTS
# =============================================================================

def _write_csv(path, txns: list[Transaction]):
    pd.DataFrame([
        {"transaction_id": t.id, "date": t.date.strftime("%Y-%m-%d"), "amount": t.amount, "description": t.description}
        for t in txns
    ]).to_csv(path, index=False)
    return str(path)


class TestCli:
    def test_writes_detections_and_store(self, tmp_path, capsys):
        input_path = _write_csv(tmp_path / "tx.csv", _make_monthly_txns("NETFLIX", -149, 4))
        output_dir = tmp_path / "out"
        store = tmp_path / "store.json"

        exit_code = main([
            "--input", input_path, "--output-dir", str(output_dir),
            "--save-store", str(store), "--explain", "netflix",
        ])

        assert exit_code == 0
        outputs = list(output_dir.glob("subscriptions_*.csv"))
        assert len(outputs) == 1
        assert pd.read_csv(outputs[0])["recipient_name"].tolist() == ["Netflix"]

        saved = JsonFileSubscriptionRepository(store).load_subscriptions()
        assert [s.name for s in saved] == ["Netflix"]

        printed = capsys.readouterr().out
        assert "SUBSCRIPTION DETECTION SUMMARY" in printed
        assert "Diagnostics for 'netflix'" in printed
        assert "[detected]" in printed

    def test_missing_input_file(self, tmp_path):
        assert main(["--input", str(tmp_path / "absent.csv"), "--output-dir", str(tmp_path)]) == 1

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        pd.DataFrame({"amount": [-1.0]}).to_csv(path, index=False)
        assert main(["--input", str(path), "--output-dir", str(tmp_path)]) == 1

    def test_invalid_min_confidence_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["--input", "tx.csv", "--min-confidence", "150"])


# =============================================================================
# DASHBOARD TESTS
# =============================================================================

class TestDashboardHelpers:
    """Streamlit runs in bare mode here; only the plain helpers are exercised."""

    def test_upload_fingerprint_tracks_content(self):
        from ui.app import upload_fingerprint
        original = b"transaction_id,date,amount,description\nt1,2024-01-15,-149,NETFLIX\n"
        edited = original.replace(b"-149", b"-159")
        assert upload_fingerprint(original) == upload_fingerprint(bytes(original))
        assert upload_fingerprint(original) != upload_fingerprint(edited)

    def test_csv_without_date_reaches_column_validation(self):
        from ui.app import load_transactions
        df = load_transactions(b"transaction_id,amount,description\nt1,-149,NETFLIX\n")
        assert list(df.columns) == ["transaction_id", "amount", "description"]
        with pytest.raises(ValueError, match="Missing required columns"):
            SubscriptionPipeline().run_detection_only(df)

    def test_tuning_view_takes_transactions_and_threshold(self):
        from ui.tuning_view import render_tuning_view
        assert list(inspect.signature(render_tuning_view).parameters) == ["transactions", "min_confidence"]
