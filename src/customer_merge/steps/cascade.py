from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from customer_merge.config import EngineConfig
from customer_merge.errors import CascadeIncompleteError, MergeEngineError
from customer_merge.interfaces import CustomerStore, RecordStore
from customer_merge.models import (
    CascadeReport,
    CustomerUpdate,
    KindRewrite,
    MergeCandidate,
    MergeOutcome,
    MergePreview,
    MergeResults,
    MergeStatus,
)
from customer_merge.schema import DEFAULT_DEPENDENTS, HISTORICAL_FIELD, CustomerField, DependentCollection, RecordKind

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProgressLogger:
    """Logs processed/total with rate and ETA each time an interval boundary is crossed."""

    def __init__(
        self,
        total: int,
        item_name: str,
        interval: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.total = total
        self.item_name = item_name
        self.processed = 0
        self._interval = max(1, interval)
        self._clock = clock
        self._started = clock()

    def increment(self, count: int = 1) -> None:
        previous = self.processed
        self.processed += count
        crossed = self.processed // self._interval > previous // self._interval
        if not crossed and self.processed != self.total:
            return
        elapsed = max(self._clock() - self._started, 1e-9)
        rate = self.processed / elapsed
        remaining = max(self.total - self.processed, 0) / rate if rate else 0.0
        percent = (self.processed / self.total * 100) if self.total else 100.0
        logger.info(
            "  %s: %d/%d (%.1f%%) - Rate: %.1f/s - ETA: %.0fs",
            self.item_name,
            self.processed,
            self.total,
            percent,
            rate,
            remaining,
        )


def rewrite_dependents(
    store: RecordStore,
    collection: DependentCollection,
    authoritative_id: str,
    provisional_id: str,
    merge_date: datetime,
    batch_size: int,
    progress_interval: int,
) -> KindRewrite:
    """Point every ``collection`` document keyed to ``provisional_id`` at ``authoritative_id``.

    Ids are streamed and written in unordered batches of ``batch_size``; a
    rejected document is recorded but never stops the rest of its batch. The
    provisional key is counted again afterwards so the caller can tell whether
    anything still references it.
    """
    rewrite = KindRewrite(kind=collection.kind)
    rewrite.expected = store.count_by_key(collection.foreign_key, provisional_id)
    if rewrite.expected:
        logger.info("  Updating %d %s...", rewrite.expected, collection.kind.value)
        updates = collection.rewrite_fields(authoritative_id, provisional_id, merge_date)
        progress = ProgressLogger(rewrite.expected, collection.kind.value, progress_interval)
        batch: list[Any] = []
        for doc_id in store.iter_ids_by_key(collection.foreign_key, provisional_id):
            batch.append(doc_id)
            if len(batch) >= batch_size:
                _flush(store, batch, updates, rewrite, progress)
                batch = []
        if batch:
            _flush(store, batch, updates, rewrite, progress)
    rewrite.remaining = store.count_by_key(collection.foreign_key, provisional_id)
    return rewrite


def _flush(
    store: RecordStore,
    batch: Sequence[Any],
    updates: Mapping[str, Any],
    rewrite: KindRewrite,
    progress: ProgressLogger,
) -> None:
    result = store.bulk_update_by_ids(batch, updates)
    rewrite.updated += result.modified
    rewrite.errors.extend(result.errors)
    progress.increment(len(batch))


class MergeCascadeExecutor:
    """Moves dependent records onto the surviving customer, then removes the absorbed one.

    The public surface is two-phase: :meth:`cascade` rewrites every dependent
    collection and returns a :class:`CascadeReport`; :meth:`delete` only
    accepts a complete report. :meth:`merge` chains both for one candidate
    and :meth:`run` drives a whole candidate list with error isolation.
    """

    def __init__(
        self,
        customers: CustomerStore,
        records: Mapping[RecordKind, RecordStore],
        config: EngineConfig | None = None,
        dependents: Sequence[DependentCollection] = DEFAULT_DEPENDENTS,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        missing = [collection.kind.value for collection in dependents if collection.kind not in records]
        if missing:
            raise ValueError(f"no record store configured for: {', '.join(missing)}")
        self._customers = customers
        self._records = records
        self._config = config or EngineConfig()
        self._dependents = tuple(dependents)
        self._clock = clock
        self._sleep = sleep

    def ensure_indexes(self) -> None:
        """Create lookup indexes on customer keys and every dependent foreign key.

        Index creation is an optimisation: a store that rejects it is logged
        and the run continues.
        """
        logger.info("Ensuring indexes for optimal performance...")
        targets: list[tuple[str, Any, tuple[str, ...]]] = [
            ("customers", self._customers, (CustomerField.IDENTIFIER.value,)),
            ("customers", self._customers, (CustomerField.DISPLAY_NAME.value,)),
        ]
        for collection in self._dependents:
            store = self._records[collection.kind]
            targets.append((collection.kind.value, store, (collection.foreign_key,)))
            targets.append((collection.kind.value, store, (collection.foreign_key, HISTORICAL_FIELD)))
        for name, store, fields in targets:
            try:
                store.ensure_index(fields)
            except Exception as exc:
                logger.warning("Could not create index %s on %s: %s", ", ".join(fields), name, exc)

    def preview(self, candidate: MergeCandidate) -> MergePreview:
        provisional_id = candidate.provisional.identifier
        documents = {
            collection.kind.value: self._records[collection.kind].count_by_key(collection.foreign_key, provisional_id)
            for collection in self._dependents
        }
        return MergePreview(
            authoritative_id=candidate.authoritative.identifier,
            authoritative_name=candidate.authoritative.display_name,
            provisional_id=provisional_id,
            provisional_name=candidate.provisional.display_name,
            documents=documents,
        )

    def cascade(self, candidate: MergeCandidate, merge_date: datetime | None = None) -> CascadeReport:
        merge_date = merge_date or self._clock()
        authoritative_id, provisional_id = candidate.key
        report = CascadeReport(authoritative_id=authoritative_id, provisional_id=provisional_id)
        for collection in self._dependents:
            report.rewrites.append(
                rewrite_dependents(
                    self._records[collection.kind],
                    collection,
                    authoritative_id,
                    provisional_id,
                    merge_date,
                    batch_size=self._config.bulk_write_batch_size,
                    progress_interval=self._config.progress_log_interval,
                )
            )
        return report

    def delete(self, candidate: MergeCandidate, report: CascadeReport, merge_date: datetime | None = None) -> bool:
        """Tag the survivor and delete the provisional customer.

        Refuses unless ``report`` holds a complete rewrite for every configured
        dependent collection.
        """
        if (report.authoritative_id, report.provisional_id) != candidate.key:
            raise MergeEngineError(
                f"cascade report for {report.provisional_id}->{report.authoritative_id} "
                f"does not belong to {candidate.provisional.identifier}->{candidate.authoritative.identifier}"
            )
        covered = {rewrite.kind for rewrite in report.rewrites}
        missing = [collection.kind.value for collection in self._dependents if collection.kind not in covered]
        if missing or not report.complete:
            raise CascadeIncompleteError(
                authoritative_id=report.authoritative_id,
                provisional_id=report.provisional_id,
                remaining=sum(rewrite.remaining for rewrite in report.rewrites),
                write_errors=sum(len(rewrite.errors) for rewrite in report.rewrites),
                missing_kinds=missing,
            )

        provisional_doc = self._customers.find_by_identifier(candidate.provisional.identifier)
        if provisional_doc is None:
            return False

        merge_date = merge_date or self._clock()
        tagged = self._customers.bulk_update(
            [
                CustomerUpdate(
                    doc_id=candidate.authoritative.doc_id,
                    set_fields={
                        CustomerField.HISTORICAL.value: True,
                        CustomerField.MERGED_FROM.value: candidate.provisional.identifier,
                        CustomerField.MERGE_DATE.value: merge_date,
                    },
                )
            ]
        )
        if tagged.errors:
            raise MergeEngineError(
                f"could not tag {candidate.authoritative.identifier}: {tagged.errors[0].message}"
            )
        return self._customers.delete_one(provisional_doc["_id"]) == 1

    def merge(self, candidate: MergeCandidate) -> MergeOutcome:
        authoritative_id, provisional_id = candidate.key
        logger.info(
            "Merging provisional customer into authoritative customer: %s (%s)",
            candidate.authoritative.display_name,
            authoritative_id,
        )
        logger.info("  Provisional customer: %s (%s)", candidate.provisional.display_name, provisional_id)
        merge_date = self._clock()
        try:
            exists = self._customers.find_by_identifier(provisional_id) is not None
            report = self.cascade(candidate, merge_date)
            deleted = self.delete(candidate, report, merge_date) if exists else False
        except Exception as exc:
            logger.error("  Error merging %s: %s", provisional_id, exc)
            return MergeOutcome(
                authoritative_id=authoritative_id,
                provisional_id=provisional_id,
                status=MergeStatus.FAILED,
                error=str(exc),
            )

        status = MergeStatus.MERGED if exists else MergeStatus.ALREADY_MERGED
        if exists:
            logger.info("  Successfully merged %s -> %s", provisional_id, authoritative_id)
        else:
            logger.info("  %s no longer exists; nothing to merge", provisional_id)
        return MergeOutcome(
            authoritative_id=authoritative_id,
            provisional_id=provisional_id,
            status=status,
            updated=report.updated_by_kind(),
            customer_deleted=deleted,
        )

    def run(self, candidates: Sequence[MergeCandidate], results: MergeResults | None = None) -> MergeResults:
        results = results or MergeResults()
        batch_size = self._config.batch_size
        batch_count = (len(candidates) + batch_size - 1) // batch_size
        logger.info("Found %d valid one-to-one mappings to process", len(candidates))

        for batch_number, start in enumerate(range(0, len(candidates), batch_size), start=1):
            logger.info("Processing batch %d/%d", batch_number, batch_count)
            for candidate in candidates[start : start + batch_size]:
                results.record(self.merge(candidate))
            if start + batch_size < len(candidates) and self._config.batch_delay_seconds > 0:
                self._sleep(self._config.batch_delay_seconds)
        return results
