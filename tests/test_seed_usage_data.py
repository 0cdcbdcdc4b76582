"""Unit tests for the seed data script."""

import importlib.util
from pathlib import Path
from unittest.mock import MagicMock

import pytest

SCRIPT_PATH = Path(__file__).resolve().parent.parent / "scripts" / "seed_usage_data.py"


@pytest.fixture(scope="module")
def seed_module():
    module_spec = importlib.util.spec_from_file_location("seed_usage_data", SCRIPT_PATH)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


class TestGenerateAllRecords:
    """Tests for generated data."""

    def test_recent_usage_is_capped(self, seed_module):
        """Test that no document keeps more than the recent entry limit."""
        _, records = seed_module.generate_all_records(5)

        for record in records:
            assert len(record.recent_usage) <= seed_module.RECENT_USAGE_LIMIT

    def test_totals_cover_at_least_recent_entries(self, seed_module):
        """Test that cumulative totals are never below the recent window."""
        _, records = seed_module.generate_all_records(5)

        for record in records:
            assert record.total_calls >= sum(e.calls for e in record.recent_usage)
            assert record.total_tokens == record.total_input_tokens + record.total_output_tokens

    def test_pending_users_have_no_usage(self, seed_module):
        """Test that only approved users get usage documents."""
        users, records = seed_module.generate_all_records(10)

        approved_ids = {u.user_id for u in users if u.is_approved}
        assert {r.user_id for r in records} == approved_ids


class TestBatchWriteItems:
    """Tests for batch_write_items."""

    def test_writes_in_batches_of_25(self, seed_module):
        """Test batching and unprocessed item retry."""
        client = MagicMock()
        client.batch_write_item.side_effect = [
            {"UnprocessedItems": {"t": [{"PutRequest": {"Item": {}}}]}},
            {"UnprocessedItems": {}},
            {},
        ]
        items = [{"user_id": {"S": str(i)}} for i in range(30)]

        written = seed_module.batch_write_items(client, "t", items)

        assert written == 30
        assert client.batch_write_item.call_count == 3
