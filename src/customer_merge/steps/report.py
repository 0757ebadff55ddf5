from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import Path

from customer_merge.interfaces import ReportSink
from customer_merge.models import Classification, Customer, DuplicateGroup, DuplicateKind, Table
from customer_merge.steps.cascade import utcnow
from customer_merge.steps.classify import AUTHORITATIVE_DUPLICATE_REASON, PROVISIONAL_DUPLICATE_REASON
from customer_merge.steps.index import CustomerIndex

logger = logging.getLogger(__name__)

AUTHORITATIVE_SHEET = "Authoritative Duplicates"
PROVISIONAL_SHEET = "Provisional Duplicates"
SUMMARY_SHEET = "Summary"

GROUP_COLUMNS = ["Group Name", "Customer Number", "Card Code", "Card Name", "Customer ID", "Reason"]
INVENTORY_GROUP_COLUMNS = [
    "Group Name",
    "Customer Number",
    "Total in Group",
    "Card Code",
    "Card Name",
    "Customer ID",
    "Reason",
]
CUSTOMER_COLUMNS = ["Card Code", "Card Name", "Customer ID", "Is Duplicate", "Duplicate Count"]


def report_timestamp(moment: datetime) -> str:
    return moment.isoformat().replace(":", "-").replace(".", "-").replace("+", "_")


class AuditReporter:
    """Turns the skipped groups of a classification into a review workbook."""

    def __init__(self, sink: ReportSink, clock: Callable[[], datetime] = utcnow) -> None:
        self._sink = sink
        self._clock = clock

    def tables(self, classification: Classification) -> dict[str, Table]:
        return {
            AUTHORITATIVE_SHEET: _group_table(classification.authoritative_duplicates, GROUP_COLUMNS),
            PROVISIONAL_SHEET: _group_table(classification.provisional_duplicates, GROUP_COLUMNS),
            SUMMARY_SHEET: Table(
                columns=["Category", "Count", "Total Customers"],
                rows=[
                    {
                        "Category": "Authoritative Duplicate Groups",
                        "Count": len(classification.authoritative_duplicates),
                        "Total Customers": classification.skipped_authoritative_count,
                    },
                    {
                        "Category": "Provisional Duplicate Groups",
                        "Count": len(classification.provisional_duplicates),
                        "Total Customers": classification.skipped_provisional_count,
                    },
                ],
            ),
        }

    def write(self, classification: Classification) -> Path:
        name = f"skipped_customers_{report_timestamp(self._clock())}"
        path = self._sink.write(name, self.tables(classification))
        logger.info("Skipped customers report saved: %s", path)
        return path


class DuplicateInventoryReporter:
    """Full inventory of both customer populations with their duplicate status."""

    def __init__(self, sink: ReportSink, clock: Callable[[], datetime] = utcnow) -> None:
        self._sink = sink
        self._clock = clock

    def tables(self, index: CustomerIndex) -> dict[str, Table]:
        authoritative_groups = _duplicate_groups(
            index.authoritative_by_name, DuplicateKind.AUTHORITATIVE, AUTHORITATIVE_DUPLICATE_REASON
        )
        provisional_groups = _duplicate_groups(
            index.provisional_by_name, DuplicateKind.PROVISIONAL, PROVISIONAL_DUPLICATE_REASON
        )
        authoritative_rows = _group_table(authoritative_groups, INVENTORY_GROUP_COLUMNS)
        provisional_rows = _group_table(provisional_groups, INVENTORY_GROUP_COLUMNS)

        summary = [
            _summary_row("Authoritative Customers", index.authoritative_by_name, authoritative_groups),
            _summary_row("Provisional Customers", index.provisional_by_name, provisional_groups),
        ]
        summary.append(
            {
                "Category": "Combined Total",
                "Total Count": summary[0]["Total Count"] + summary[1]["Total Count"],
                "Unique Names": len(set(index.authoritative_by_name) | set(index.provisional_by_name)),
                "Duplicate Groups": len(authoritative_groups) + len(provisional_groups),
                "Customers in Duplicates": len(authoritative_rows.rows) + len(provisional_rows.rows),
            }
        )

        group_summary = [
            {
                "Customer Type": label,
                "Group Name": group.name,
                "Duplicate Count": len(group.customers),
                "Card Codes": ", ".join(customer.identifier for customer in group.customers),
                "Reason": group.reason,
            }
            for label, groups in (("Authoritative", authoritative_groups), ("Provisional", provisional_groups))
            for group in groups
        ]

        return {
            AUTHORITATIVE_SHEET: authoritative_rows,
            PROVISIONAL_SHEET: provisional_rows,
            "All Authoritative Customers": _customer_table(index.authoritative_by_name),
            "All Provisional Customers": _customer_table(index.provisional_by_name),
            SUMMARY_SHEET: Table(
                columns=["Category", "Total Count", "Unique Names", "Duplicate Groups", "Customers in Duplicates"],
                rows=summary,
            ),
            "Duplicate Groups Summary": Table(
                columns=["Customer Type", "Group Name", "Duplicate Count", "Card Codes", "Reason"],
                rows=group_summary,
            ),
        }

    def write(self, index: CustomerIndex) -> Path:
        name = f"complete_customer_duplicates_report_{report_timestamp(self._clock())}"
        path = self._sink.write(name, self.tables(index))
        logger.info("Comprehensive duplicates report saved: %s", path)
        return path


def _group_table(groups: Sequence[DuplicateGroup], columns: list[str]) -> Table:
    table = Table(columns=list(columns))
    for group in groups:
        for number, customer in enumerate(group.customers, start=1):
            row = {
                "Group Name": group.name,
                "Customer Number": number,
                "Total in Group": len(group.customers),
                "Card Code": customer.identifier,
                "Card Name": customer.display_name,
                "Customer ID": "" if customer.doc_id is None else str(customer.doc_id),
                "Reason": group.reason,
            }
            table.rows.append({column: row[column] for column in columns})
    return table


def _duplicate_groups(
    by_name: dict[str, list[Customer]], kind: DuplicateKind, reason: str
) -> list[DuplicateGroup]:
    return [
        DuplicateGroup(
            name=name,
            kind=kind,
            customers=tuple(sorted(by_name[name], key=lambda customer: customer.identifier)),
            reason=reason,
        )
        for name in sorted(by_name)
        if len(by_name[name]) > 1
    ]


def _customer_table(by_name: dict[str, list[Customer]]) -> Table:
    table = Table(columns=list(CUSTOMER_COLUMNS))
    for name in sorted(by_name):
        customers = by_name[name]
        for customer in customers:
            table.rows.append(
                {
                    "Card Code": customer.identifier,
                    "Card Name": customer.display_name,
                    "Customer ID": "" if customer.doc_id is None else str(customer.doc_id),
                    "Is Duplicate": "Yes" if len(customers) > 1 else "No",
                    "Duplicate Count": len(customers),
                }
            )
    return table


def _summary_row(category: str, by_name: dict[str, list[Customer]], groups: Sequence[DuplicateGroup]) -> dict[str, object]:
    return {
        "Category": category,
        "Total Count": sum(len(customers) for customers in by_name.values()),
        "Unique Names": len(by_name),
        "Duplicate Groups": len(groups),
        "Customers in Duplicates": sum(len(group.customers) for group in groups),
    }
