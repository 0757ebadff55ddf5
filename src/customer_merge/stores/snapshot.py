from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

from customer_merge.errors import StoreUnavailableError
from customer_merge.schema import RecordKind
from customer_merge.stores.memory import InMemoryCustomerStore, InMemoryRecordStore

CUSTOMERS_FILE = "customers.json"

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """An exported database: the customer collection plus one store per dependent kind."""

    customers: InMemoryCustomerStore
    records: dict[RecordKind, InMemoryRecordStore] = field(default_factory=dict)

    @classmethod
    def from_documents(
        cls,
        customers: list[dict[str, Any]],
        records: dict[RecordKind, list[dict[str, Any]]] | None = None,
    ) -> "Snapshot":
        records = records or {}
        return cls(
            customers=InMemoryCustomerStore(customers),
            records={kind: InMemoryRecordStore(kind.value, records.get(kind, [])) for kind in RecordKind},
        )


def load_snapshot(directory: Path) -> Snapshot:
    customers_path = directory / CUSTOMERS_FILE
    if not customers_path.exists():
        raise StoreUnavailableError("customers", f"snapshot file not found: {customers_path}")
    try:
        customers = _read_json(customers_path)
    except (OSError, ValueError) as exc:
        raise StoreUnavailableError("customers", f"cannot read {customers_path}: {exc}") from exc

    records: dict[RecordKind, list[dict[str, Any]]] = {}
    for kind in RecordKind:
        path = directory / f"{kind.value}.json"
        if not path.exists():
            logger.warning("No %s snapshot at %s; treating collection as empty", kind.value, path)
            records[kind] = []
            continue
        try:
            records[kind] = _read_json(path)
        except (OSError, ValueError) as exc:
            raise StoreUnavailableError(kind.value, f"cannot read {path}: {exc}") from exc
    return Snapshot.from_documents(customers, records)


def save_snapshot(snapshot: Snapshot, directory: Path) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    _write_json(directory / CUSTOMERS_FILE, snapshot.customers.documents())
    for kind, store in snapshot.records.items():
        _write_json(directory / f"{kind.value}.json", store.documents())


def _read_json(path: Path) -> list[dict[str, Any]]:
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, list):
        raise ValueError(f"expected a JSON array of documents in {path}")
    return payload


def _write_json(path: Path, payload: object) -> None:
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
