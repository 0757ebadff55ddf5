from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class CustomerField(StrEnum):
    """Document keys of the customer master collection."""

    IDENTIFIER = "CardCode"
    DISPLAY_NAME = "CardName"
    EMAIL = "Email"
    PHONE = "phoneNumber"
    ADDITIONAL_PHONES = "additionalPhones"
    FIRST_NAME = "firstName"
    LAST_NAME = "lastName"
    EXTERNAL_ID = "hubspotId"
    MERGED_FROM = "mergedFrom"
    MERGE_DATE = "mergeDate"
    HISTORICAL = "Historical"
    UPDATED_AT = "updatedAt"


class RecordKind(StrEnum):
    INVOICE = "invoices"
    PAYMENT = "payments"
    PRODUCT_SALES = "product_sales"


# Merge tags written on every rewritten dependent record.
HISTORICAL_FIELD = "Historical"
MERGED_FROM_FIELD = "mergedFrom"
MERGE_DATE_FIELD = "mergeDate"


@dataclass(frozen=True)
class DependentCollection:
    """Describes a transactional collection that points at customers by foreign key."""

    kind: RecordKind
    foreign_key: str

    def rewrite_fields(self, authoritative_id: str, provisional_id: str, merge_date: object) -> dict[str, object]:
        return {
            self.foreign_key: authoritative_id,
            HISTORICAL_FIELD: True,
            MERGED_FROM_FIELD: provisional_id,
            MERGE_DATE_FIELD: merge_date,
        }


# Processing order matters only for logging; every kind is rewritten before deletion.
DEFAULT_DEPENDENTS: tuple[DependentCollection, ...] = (
    DependentCollection(kind=RecordKind.INVOICE, foreign_key="CardCode"),
    DependentCollection(kind=RecordKind.PAYMENT, foreign_key="CardCode"),
    DependentCollection(kind=RecordKind.PRODUCT_SALES, foreign_key="customerId"),
)
