from __future__ import annotations

import copy
import itertools
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from customer_merge.errors import StoreUnavailableError
from customer_merge.models import BulkWriteResult, CustomerUpdate, WriteError
from customer_merge.schema import CustomerField


class _InMemoryCollection:
    def __init__(
        self,
        name: str,
        documents: Iterable[Mapping[str, Any]] = (),
        fail_ids: Iterable[Any] = (),
        available: bool = True,
    ) -> None:
        self.name = name
        self.available = available
        self._fail_ids = set(fail_ids)
        self._sequence = itertools.count(1)
        self._docs: dict[Any, dict[str, Any]] = {}
        self.indexes: list[tuple[str, ...]] = []
        for document in documents:
            self.insert(document)

    def insert(self, document: Mapping[str, Any]) -> Any:
        doc = dict(document)
        if doc.get("_id") is None:
            doc["_id"] = f"{self.name}-{next(self._sequence):06d}"
        self._docs[doc["_id"]] = doc
        return doc["_id"]

    def ping(self) -> None:
        if not self.available:
            raise StoreUnavailableError(self.name, "collection is unreachable")

    def count(self) -> int:
        self.ping()
        return len(self._docs)

    def ensure_index(self, fields: Sequence[str]) -> None:
        self.ping()
        key = tuple(fields)
        if key not in self.indexes:
            self.indexes.append(key)

    def documents(self) -> list[dict[str, Any]]:
        return [copy.deepcopy(doc) for doc in self._docs.values()]

    def get(self, doc_id: Any) -> dict[str, Any] | None:
        doc = self._docs.get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def fail_writes_for(self, *doc_ids: Any) -> None:
        self._fail_ids.update(doc_ids)

    def clear_write_failures(self) -> None:
        self._fail_ids.clear()


class InMemoryCustomerStore(_InMemoryCollection):
    """Customer collection held in a dict, keyed by ``_id`` in insertion order."""

    def __init__(
        self,
        documents: Iterable[Mapping[str, Any]] = (),
        fail_ids: Iterable[Any] = (),
        available: bool = True,
    ) -> None:
        super().__init__("customers", documents, fail_ids=fail_ids, available=available)

    def iter_all(self) -> Iterator[dict[str, Any]]:
        self.ping()
        for doc in list(self._docs.values()):
            yield copy.deepcopy(doc)

    def find_by_identifier(self, identifier: str) -> dict[str, Any] | None:
        self.ping()
        for doc in self._docs.values():
            if doc.get(CustomerField.IDENTIFIER) == identifier:
                return copy.deepcopy(doc)
        return None

    def bulk_update(self, updates: Sequence[CustomerUpdate]) -> BulkWriteResult:
        self.ping()
        result = BulkWriteResult()
        for update in updates:
            doc = self._docs.get(update.doc_id)
            if doc is None:
                continue
            result.matched += 1
            if update.doc_id in self._fail_ids:
                result.errors.append(WriteError(doc_id=update.doc_id, message="write rejected by store"))
                continue
            changed = False
            for key, value in update.set_fields.items():
                if doc.get(key) != value:
                    doc[key] = value
                    changed = True
            for key, values in update.add_to_set.items():
                current = list(doc.get(key) or [])
                for value in values:
                    if value not in current:
                        current.append(value)
                        changed = True
                doc[key] = current
            if changed:
                result.modified += 1
        return result

    def delete_one(self, doc_id: Any) -> int:
        self.ping()
        if doc_id in self._fail_ids:
            raise RuntimeError(f"delete rejected by store for {doc_id}")
        return 1 if self._docs.pop(doc_id, None) is not None else 0


class InMemoryRecordStore(_InMemoryCollection):
    """Dependent record collection with best-effort (unordered) bulk writes."""

    def count_by_key(self, field: str, value: str) -> int:
        self.ping()
        return sum(1 for doc in self._docs.values() if doc.get(field) == value)

    def iter_ids_by_key(self, field: str, value: str) -> Iterator[Any]:
        self.ping()
        for doc_id, doc in list(self._docs.items()):
            if doc.get(field) == value:
                yield doc_id

    def bulk_update_by_ids(self, ids: Sequence[Any], updates: Mapping[str, Any]) -> BulkWriteResult:
        self.ping()
        result = BulkWriteResult()
        for doc_id in ids:
            doc = self._docs.get(doc_id)
            if doc is None:
                continue
            result.matched += 1
            if doc_id in self._fail_ids:
                result.errors.append(WriteError(doc_id=doc_id, message="write rejected by store"))
                continue
            doc.update(updates)
            result.modified += 1
        return result
