from __future__ import annotations

import json

import pytest
from conftest import MERGE_DATE

from customer_merge.errors import StoreUnavailableError
from customer_merge.schema import RecordKind
from customer_merge.stores import Snapshot, load_snapshot, save_snapshot


def test_snapshot_round_trip_keeps_ids_and_dates(tmp_path) -> None:
    snapshot = Snapshot.from_documents(
        [{"_id": "a1", "CardCode": "C0001", "CardName": "Jane Doe", "mergeDate": MERGE_DATE}],
        {RecordKind.INVOICE: [{"_id": "inv-1", "CardCode": "C0001"}]},
    )

    save_snapshot(snapshot, tmp_path)
    loaded = load_snapshot(tmp_path)

    assert loaded.customers.get("a1")["mergeDate"] == "2024-01-02T03:04:05+00:00"
    assert loaded.records[RecordKind.INVOICE].count_by_key("CardCode", "C0001") == 1
    assert loaded.records[RecordKind.PAYMENT].count() == 0


def test_missing_customer_file_is_unavailable(tmp_path) -> None:
    with pytest.raises(StoreUnavailableError) as excinfo:
        load_snapshot(tmp_path)

    assert excinfo.value.store == "customers"


def test_missing_dependent_files_load_as_empty(tmp_path) -> None:
    (tmp_path / "customers.json").write_text(json.dumps([{"CardCode": "C0001", "CardName": "A"}]), encoding="utf-8")

    snapshot = load_snapshot(tmp_path)

    assert snapshot.customers.count() == 1
    assert snapshot.customers.find_by_identifier("C0001")["_id"] == "customers-000001"
    assert all(store.count() == 0 for store in snapshot.records.values())


def test_malformed_file_is_unavailable(tmp_path) -> None:
    (tmp_path / "customers.json").write_text("[]", encoding="utf-8")
    (tmp_path / "payments.json").write_text('{"not": "a list"}', encoding="utf-8")

    with pytest.raises(StoreUnavailableError) as excinfo:
        load_snapshot(tmp_path)

    assert excinfo.value.store == "payments"
