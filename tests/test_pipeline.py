from __future__ import annotations

import pytest
from conftest import MERGE_DATE, customer

from customer_merge.config import EngineConfig
from customer_merge.errors import StoreUnavailableError
from customer_merge.runners import LocalMergePipeline
from customer_merge.schema import RecordKind
from customer_merge.steps import AuditReporter, DuplicateInventoryReporter
from customer_merge.stores import InMemoryCustomerStore, InMemoryRecordStore


def _pipeline(customers, records, sink) -> LocalMergePipeline:
    return LocalMergePipeline(
        customers,
        records,
        reporter=AuditReporter(sink, clock=lambda: MERGE_DATE),
        config=EngineConfig(batch_delay_seconds=0),
        clock=lambda: MERGE_DATE,
        sleep=lambda _: None,
    )


def test_stats_counts_each_population(customers, records, sink) -> None:
    stats = _pipeline(customers, records, sink).stats()

    assert stats.customer_count == 8
    assert stats.authoritative_count == 4
    assert stats.provisional_count == 4
    assert stats.dependent_counts == {"invoices": 5, "payments": 2, "product_sales": 1}


def test_dry_run_previews_without_writing(customers, records, sink) -> None:
    before = {kind: store.documents() for kind, store in records.items()}

    results = _pipeline(customers, records, sink).dry_run()

    assert [(p.authoritative_id, p.provisional_id) for p in results.previews] == [("C0001", "NC-55")]
    assert results.totals() == {"invoices": 3, "payments": 2, "product_sales": 1}
    assert results.classification.skipped_authoritative_count == 2
    assert results.classification.skipped_provisional_count == 2
    assert {kind: store.documents() for kind, store in records.items()} == before
    assert customers.count() == 8
    assert results.report_path == "skipped_customers_2024-01-02T03-04-05_00-00.xlsx"
    assert len(sink.writes) == 1


def test_dry_run_and_execute_agree_on_candidates(customers, records, sink) -> None:
    pipeline = _pipeline(customers, records, sink)
    dry = pipeline.dry_run()

    results = pipeline.execute()

    assert [(p.authoritative_id, p.provisional_id) for p in dry.previews] == [
        (o.authoritative_id, o.provisional_id) for o in results.outcomes
    ]
    assert sink.writes[0][1].keys() == sink.writes[1][1].keys()
    assert [table.rows for table in sink.writes[0][1].values()] == [
        table.rows for table in sink.writes[1][1].values()
    ]


def test_execute_merges_and_reports(customers, records, sink) -> None:
    results = _pipeline(customers, records, sink).execute()

    assert results.candidates_processed == 1
    assert results.total_merged == 1
    assert results.customers_deleted == 1
    assert results.updated == {"invoices": 3, "payments": 2, "product_sales": 1}
    assert results.skipped_authoritative_duplicates == 2
    assert results.skipped_provisional_duplicates == 2
    assert results.errors == []
    assert customers.count() == 7
    assert records[RecordKind.INVOICE].count_by_key("CardCode", "NC-55") == 0


def test_second_execute_is_a_noop(customers, records, sink) -> None:
    pipeline = _pipeline(customers, records, sink)
    pipeline.execute()

    again = pipeline.execute()

    assert again.candidates_processed == 0
    assert again.customers_deleted == 0
    assert customers.count() == 7


def test_unreachable_store_fails_before_any_change(records, sink) -> None:
    customers = InMemoryCustomerStore([{"_id": "p1", "CardCode": "NC-55", "CardName": "Jane Doe"}], available=False)
    before = records[RecordKind.INVOICE].documents()

    with pytest.raises(StoreUnavailableError):
        _pipeline(customers, records, sink).execute()

    assert sink.writes == []
    assert records[RecordKind.INVOICE].documents() == before


def test_unreachable_dependent_store_fails_before_any_change(customers, records, sink) -> None:
    records[RecordKind.PAYMENT].available = False

    with pytest.raises(StoreUnavailableError):
        _pipeline(customers, records, sink).execute()

    assert customers.count() == 8
    assert sink.writes == []


def test_inventory_uses_given_reporter(customers, records, sink) -> None:
    reporter = DuplicateInventoryReporter(sink, clock=lambda: MERGE_DATE)

    path = _pipeline(customers, records, sink).inventory(reporter)

    assert path.name == "complete_customer_duplicates_report_2024-01-02T03-04-05_00-00.xlsx"
    assert customers.count() == 8


def _stores(customer_documents, invoices):
    customers = InMemoryCustomerStore(customer_documents)
    records = {kind: InMemoryRecordStore(kind.value) for kind in RecordKind}
    records[RecordKind.INVOICE] = InMemoryRecordStore("invoices", invoices)
    return customers, records


def test_padded_provisional_code_is_merged_verbatim(sink) -> None:
    customers, records = _stores(
        [customer("a1", "C0001", "Jane Doe"), customer("p1", "NC-55 ", "jane doe")],
        [{"_id": "inv-1", "CardCode": "NC-55 "}],
    )

    results = _pipeline(customers, records, sink).execute()

    assert results.total_merged == 1
    assert results.updated["invoices"] == 1
    assert records[RecordKind.INVOICE].get("inv-1")["CardCode"] == "C0001"
    assert customers.find_by_identifier("NC-55 ") is None


def test_padded_authoritative_code_stays_provisional(sink) -> None:
    customers, records = _stores(
        [customer("a1", " C0001", "Jane Doe"), customer("p1", "NC-55", "jane doe")],
        [{"_id": "inv-1", "CardCode": " C0001"}, {"_id": "inv-2", "CardCode": "NC-55"}],
    )
    pipeline = _pipeline(customers, records, sink)
    before = records[RecordKind.INVOICE].documents()

    stats = pipeline.stats()
    results = pipeline.execute()

    assert stats.authoritative_count == 0
    assert results.candidates_processed == 0
    assert results.skipped_provisional_duplicates == 2
    assert records[RecordKind.INVOICE].documents() == before
    assert customers.count() == 2


def test_non_string_codes_are_excluded_from_matching(sink) -> None:
    customers, records = _stores(
        [customer("a1", "C0001", "Jane Doe"), customer("x1", 1234, "jane doe")],
        [{"_id": "inv-1", "CardCode": 1234}],
    )
    pipeline = _pipeline(customers, records, sink)

    stats = pipeline.stats()
    index, classification = pipeline.classify()
    results = pipeline.execute()

    assert (stats.authoritative_count, stats.provisional_count) == (1, 1)
    assert (index.authoritative_count, index.provisional_count, index.excluded_count) == (1, 1, 1)
    assert classification.valid_candidates == ()
    assert results.candidates_processed == 0
    assert records[RecordKind.INVOICE].get("inv-1")["CardCode"] == 1234


def test_execute_creates_foreign_key_indexes(customers, records, sink) -> None:
    _pipeline(customers, records, sink).execute()

    assert customers.indexes == [("CardCode",), ("CardName",)]
    assert records[RecordKind.INVOICE].indexes == [("CardCode",), ("CardCode", "Historical")]
    assert records[RecordKind.PRODUCT_SALES].indexes == [("customerId",), ("customerId", "Historical")]
