from __future__ import annotations

from datetime import datetime, timezone

import pandas as pd
from conftest import MERGE_DATE, customer

from customer_merge.models import Classification, Table
from customer_merge.sinks import ExcelReportSink
from customer_merge.steps.classify import PROVISIONAL_DUPLICATE_REASON, DuplicateClassifier
from customer_merge.steps.index import CustomerIndexBuilder
from customer_merge.steps.report import (
    AUTHORITATIVE_SHEET,
    PROVISIONAL_SHEET,
    SUMMARY_SHEET,
    AuditReporter,
    DuplicateInventoryReporter,
    report_timestamp,
)


def _index():
    return CustomerIndexBuilder().build(
        [
            customer("a1", "C0001", "ACME"),
            customer("a2", "C0002", "acme"),
            customer("a3", "C0003", "Bolt"),
            customer("p1", "NC-1", "bolt"),
            customer("p2", "NC-2", "Bolt "),
            customer("p3", "NC-3", "Zen"),
        ]
    )


def test_report_timestamp_is_filename_safe() -> None:
    moment = datetime(2024, 5, 6, 7, 8, 9, 123000, tzinfo=timezone.utc)

    assert report_timestamp(moment) == "2024-05-06T07-08-09-123000_00-00"


def test_audit_tables_list_every_skipped_customer() -> None:
    classification = DuplicateClassifier().classify(_index())

    tables = AuditReporter(sink=None).tables(classification)

    assert list(tables) == [AUTHORITATIVE_SHEET, PROVISIONAL_SHEET, SUMMARY_SHEET]
    assert [row["Card Code"] for row in tables[AUTHORITATIVE_SHEET].rows] == ["C0001", "C0002"]
    assert [row["Customer Number"] for row in tables[AUTHORITATIVE_SHEET].rows] == [1, 2]
    provisional = tables[PROVISIONAL_SHEET].rows
    assert [row["Card Code"] for row in provisional] == ["NC-1", "NC-2"]
    assert {row["Reason"] for row in provisional} == {PROVISIONAL_DUPLICATE_REASON}
    assert provisional[0]["Customer ID"] == "p1"
    assert tables[SUMMARY_SHEET].rows == [
        {"Category": "Authoritative Duplicate Groups", "Count": 1, "Total Customers": 2},
        {"Category": "Provisional Duplicate Groups", "Count": 1, "Total Customers": 2},
    ]


def test_audit_report_is_written_even_without_duplicates(sink) -> None:
    path = AuditReporter(sink, clock=lambda: MERGE_DATE).write(Classification())

    name, tables = sink.writes[0]
    assert name == "skipped_customers_2024-01-02T03-04-05_00-00"
    assert path.name == f"{name}.xlsx"
    assert tables[AUTHORITATIVE_SHEET].rows == []
    assert tables[SUMMARY_SHEET].rows[0]["Count"] == 0


def test_inventory_summary_combines_populations() -> None:
    tables = DuplicateInventoryReporter(sink=None).tables(_index())

    authoritative, provisional, combined = tables[SUMMARY_SHEET].rows
    assert authoritative == {
        "Category": "Authoritative Customers",
        "Total Count": 3,
        "Unique Names": 2,
        "Duplicate Groups": 1,
        "Customers in Duplicates": 2,
    }
    assert provisional["Total Count"] == 3
    assert combined["Total Count"] == 6
    assert combined["Unique Names"] == 3
    assert combined["Duplicate Groups"] == 2
    assert combined["Customers in Duplicates"] == 4


def test_inventory_lists_all_customers_with_duplicate_flags() -> None:
    tables = DuplicateInventoryReporter(sink=None).tables(_index())

    flags = {row["Card Code"]: row["Is Duplicate"] for row in tables["All Authoritative Customers"].rows}
    assert flags == {"C0001": "Yes", "C0002": "Yes", "C0003": "No"}
    assert tables["Duplicate Groups Summary"].rows[0]["Card Codes"] == "C0001, C0002"
    assert tables[PROVISIONAL_SHEET].rows[0]["Total in Group"] == 2


def test_excel_sink_writes_one_sheet_per_table(tmp_path) -> None:
    tables = {
        "Filled": Table(columns=["Card Code", "Count"], rows=[{"Card Code": "C0001", "Count": 2}]),
        "Empty": Table(columns=["Card Code", "Reason"]),
        "A sheet name that is far too long for Excel": Table(columns=["x"], rows=[{"x": 1}]),
    }

    path = ExcelReportSink(tmp_path / "reports").write("report", tables)

    assert path == tmp_path / "reports" / "report.xlsx"
    sheets = pd.read_excel(path, sheet_name=None)
    assert list(sheets) == ["Filled", "Empty", "A sheet name that is far too lo"]
    assert sheets["Filled"].to_dict("records") == [{"Card Code": "C0001", "Count": 2}]
    assert list(sheets["Empty"].columns) == ["Card Code", "Reason"]
    assert sheets["Empty"].empty
