from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path

import pytest

from customer_merge.models import Table
from customer_merge.schema import RecordKind
from customer_merge.stores import InMemoryCustomerStore, InMemoryRecordStore

MERGE_DATE = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class RecordingSink:
    def __init__(self) -> None:
        self.writes: list[tuple[str, dict[str, Table]]] = []

    def write(self, name: str, tables: Mapping[str, Table]) -> Path:
        self.writes.append((name, dict(tables)))
        return Path(f"{name}.xlsx")


def customer(doc_id: str, code: str, name: str, **extra: object) -> dict[str, object]:
    return {"_id": doc_id, "CardCode": code, "CardName": name, **extra}


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def customers() -> InMemoryCustomerStore:
    return InMemoryCustomerStore(
        [
            customer("a1", "C0001", "Jane Doe"),
            customer("p1", "NC-55", "  jane   DOE "),
            customer("a2", "C0002", "ACME"),
            customer("a3", "C0003", "acme"),
            customer("p2", "NC-9", "Acme"),
            customer("a4", "C0004", "Bolt"),
            customer("p3", "NC-1", "bolt"),
            customer("p4", "NC-2", "BOLT"),
        ]
    )


@pytest.fixture
def records() -> dict[RecordKind, InMemoryRecordStore]:
    return {
        RecordKind.INVOICE: InMemoryRecordStore(
            "invoices",
            [
                {"_id": "inv-1", "CardCode": "NC-55", "DocTotal": 120.0},
                {"_id": "inv-2", "CardCode": "NC-55", "DocTotal": 80.5},
                {"_id": "inv-3", "CardCode": "NC-55", "DocTotal": 10.0},
                {"_id": "inv-4", "CardCode": "C0001", "DocTotal": 42.0},
                {"_id": "inv-5", "CardCode": "NC-9", "DocTotal": 7.0},
            ],
        ),
        RecordKind.PAYMENT: InMemoryRecordStore(
            "payments",
            [
                {"_id": "pay-1", "CardCode": "NC-55", "CashSum": 120.0},
                {"_id": "pay-2", "CardCode": "NC-55", "CashSum": 80.5},
            ],
        ),
        RecordKind.PRODUCT_SALES: InMemoryRecordStore(
            "product_sales",
            [{"_id": "ps-1", "customerId": "NC-55", "itemCode": "SKU100", "quantity": 3}],
        ),
    }
