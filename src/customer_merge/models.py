from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Mapping

from customer_merge.schema import CustomerField, RecordKind


@dataclass(slots=True)
class Customer:
    """Canonical representation of a customer master record."""

    identifier: str
    display_name: str = ""
    email: str = ""
    phone: str = ""
    additional_phones: list[str] = field(default_factory=list)
    first_name: str = ""
    last_name: str = ""
    external_id: str = ""
    merged_from: str | None = None
    merge_date: datetime | None = None
    historical: bool = False
    doc_id: Any = None

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "Customer":
        phones = document.get(CustomerField.ADDITIONAL_PHONES) or []
        return cls(
            identifier=_identifier(document.get(CustomerField.IDENTIFIER)),
            display_name=_text(document.get(CustomerField.DISPLAY_NAME)),
            email=_text(document.get(CustomerField.EMAIL)),
            phone=_text(document.get(CustomerField.PHONE)),
            additional_phones=[str(phone) for phone in phones if phone],
            first_name=_text(document.get(CustomerField.FIRST_NAME)),
            last_name=_text(document.get(CustomerField.LAST_NAME)),
            external_id=_text(document.get(CustomerField.EXTERNAL_ID)),
            merged_from=document.get(CustomerField.MERGED_FROM),
            merge_date=document.get(CustomerField.MERGE_DATE),
            historical=bool(document.get(CustomerField.HISTORICAL, False)),
            doc_id=document.get("_id"),
        )


@dataclass(frozen=True, slots=True)
class MergeCandidate:
    """A validated one-to-one pairing: the provisional record folds into the authoritative one."""

    authoritative: Customer
    provisional: Customer

    @property
    def key(self) -> tuple[str, str]:
        return (self.authoritative.identifier, self.provisional.identifier)


class DuplicateKind(StrEnum):
    AUTHORITATIVE = "authoritative"
    PROVISIONAL = "provisional"


@dataclass(frozen=True, slots=True)
class DuplicateGroup:
    """Records sharing a match key that cannot be resolved automatically."""

    name: str
    kind: DuplicateKind
    customers: tuple[Customer, ...]
    reason: str


@dataclass(frozen=True, slots=True)
class Classification:
    """Immutable output of the duplicate classifier, shared by dry-run and execute."""

    valid_candidates: tuple[MergeCandidate, ...] = ()
    authoritative_duplicates: tuple[DuplicateGroup, ...] = ()
    provisional_duplicates: tuple[DuplicateGroup, ...] = ()
    unmatched: tuple[Customer, ...] = ()

    @property
    def skipped_authoritative_count(self) -> int:
        return sum(len(group.customers) for group in self.authoritative_duplicates)

    @property
    def skipped_provisional_count(self) -> int:
        return sum(len(group.customers) for group in self.provisional_duplicates)


@dataclass(slots=True)
class WriteError:
    doc_id: Any
    message: str


@dataclass(slots=True)
class BulkWriteResult:
    matched: int = 0
    modified: int = 0
    errors: list[WriteError] = field(default_factory=list)


@dataclass(slots=True)
class CustomerUpdate:
    """Field-level update for one customer document ($set plus $addToSet semantics)."""

    doc_id: Any
    set_fields: dict[str, Any] = field(default_factory=dict)
    add_to_set: dict[str, list[Any]] = field(default_factory=dict)


@dataclass(slots=True)
class KindRewrite:
    kind: RecordKind
    expected: int = 0
    updated: int = 0
    remaining: int = 0
    errors: list[WriteError] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.errors and self.remaining == 0


@dataclass(slots=True)
class CascadeReport:
    """Per-kind outcome of rewriting a candidate's dependent records."""

    authoritative_id: str
    provisional_id: str
    rewrites: list[KindRewrite] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return all(rewrite.complete for rewrite in self.rewrites)

    @property
    def documents_rewritten(self) -> int:
        return sum(rewrite.updated for rewrite in self.rewrites)

    def updated_by_kind(self) -> dict[str, int]:
        return {rewrite.kind.value: rewrite.updated for rewrite in self.rewrites}


class MergeStatus(StrEnum):
    MERGED = "merged"
    ALREADY_MERGED = "already_merged"
    FAILED = "failed"


@dataclass(slots=True)
class MergeOutcome:
    authoritative_id: str
    provisional_id: str
    status: MergeStatus
    updated: dict[str, int] = field(default_factory=dict)
    customer_deleted: bool = False
    error: str | None = None


@dataclass(slots=True)
class MergeError:
    authoritative_id: str
    provisional_id: str
    error: str


@dataclass(slots=True)
class MergeResults:
    """Aggregated summary of one execute run."""

    candidates_processed: int = 0
    total_merged: int = 0
    already_merged: int = 0
    updated: dict[str, int] = field(default_factory=lambda: {kind.value: 0 for kind in RecordKind})
    customers_deleted: int = 0
    skipped_authoritative_duplicates: int = 0
    skipped_provisional_duplicates: int = 0
    errors: list[MergeError] = field(default_factory=list)
    report_path: str | None = None
    elapsed_seconds: float = 0.0
    outcomes: list[MergeOutcome] = field(default_factory=list)

    def record(self, outcome: MergeOutcome) -> None:
        self.candidates_processed += 1
        self.outcomes.append(outcome)
        for kind, count in outcome.updated.items():
            self.updated[kind] = self.updated.get(kind, 0) + count
        if outcome.customer_deleted:
            self.customers_deleted += 1
        if outcome.status == MergeStatus.MERGED:
            self.total_merged += 1
        elif outcome.status == MergeStatus.ALREADY_MERGED:
            self.already_merged += 1
        else:
            self.errors.append(
                MergeError(
                    authoritative_id=outcome.authoritative_id,
                    provisional_id=outcome.provisional_id,
                    error=outcome.error or "unknown error",
                )
            )


@dataclass(slots=True)
class MergePreview:
    authoritative_id: str
    authoritative_name: str
    provisional_id: str
    provisional_name: str
    documents: dict[str, int]

    @property
    def total(self) -> int:
        return sum(self.documents.values())


@dataclass(slots=True)
class DryRunResults:
    classification: Classification
    previews: list[MergePreview]
    report_path: str | None = None
    elapsed_seconds: float = 0.0

    def totals(self) -> dict[str, int]:
        totals = {kind.value: 0 for kind in RecordKind}
        for preview in self.previews:
            for kind, count in preview.documents.items():
                totals[kind] = totals.get(kind, 0) + count
        return totals


@dataclass(slots=True)
class ExternalContact:
    """A contact row from the marketing platform export, pre-normalized for matching."""

    email: str
    phone: str = ""
    original_phone: str = ""
    first_name: str = ""
    last_name: str = ""
    external_id: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(slots=True)
class GapFillResults:
    total_contacts: int = 0
    emails_updated: int = 0
    phones_added_to_existing: int = 0
    matched_by_phone: int = 0
    matched_by_name: int = 0
    no_matches: int = 0
    operations_executed: int = 0
    errors: list[WriteError] = field(default_factory=list)


@dataclass(slots=True)
class CollectionStats:
    customer_count: int
    authoritative_count: int
    provisional_count: int
    dependent_counts: dict[str, int]


@dataclass(slots=True)
class Table:
    """A tabular dataset handed to a report sink: ordered columns plus row dicts."""

    columns: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)


def _identifier(value: Any) -> str:
    # Keys are compared verbatim against dependent foreign keys; never trim them.
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
