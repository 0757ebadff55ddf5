from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator, Mapping, Protocol, Sequence

from customer_merge.models import BulkWriteResult, CustomerUpdate, Table


class CustomerStore(Protocol):
    """Customer master collection."""

    def ping(self) -> None:
        """Raise StoreUnavailableError when the store cannot be reached."""
        ...

    def iter_all(self) -> Iterator[dict[str, Any]]:
        """Stream every customer document once."""
        ...

    def find_by_identifier(self, identifier: str) -> dict[str, Any] | None:
        ...

    def count(self) -> int:
        ...

    def bulk_update(self, updates: Sequence[CustomerUpdate]) -> BulkWriteResult:
        """Apply updates unordered; one failing document must not stop the others."""
        ...

    def delete_one(self, doc_id: Any) -> int:
        ...

    def ensure_index(self, fields: Sequence[str]) -> None:
        """Create an ascending index on ``fields`` if it does not exist yet."""
        ...


class RecordStore(Protocol):
    """A dependent transactional collection (invoices, payments, product sales)."""

    def ping(self) -> None:
        ...

    def count(self) -> int:
        ...

    def count_by_key(self, field: str, value: str) -> int:
        ...

    def iter_ids_by_key(self, field: str, value: str) -> Iterator[Any]:
        """Stream ``_id`` projections of documents whose ``field`` equals ``value``."""
        ...

    def bulk_update_by_ids(self, ids: Sequence[Any], updates: Mapping[str, Any]) -> BulkWriteResult:
        ...

    def ensure_index(self, fields: Sequence[str]) -> None:
        ...


class ReportSink(Protocol):
    """Persists named tabular datasets for human review."""

    def write(self, name: str, tables: Mapping[str, Table]) -> Path:
        ...
