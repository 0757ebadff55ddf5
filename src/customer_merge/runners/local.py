from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from datetime import datetime
from pathlib import Path

from customer_merge.config import EngineConfig
from customer_merge.errors import StoreUnavailableError
from customer_merge.interfaces import CustomerStore, RecordStore
from customer_merge.models import Classification, CollectionStats, DryRunResults, MergeResults
from customer_merge.schema import CustomerField, RecordKind
from customer_merge.steps.cascade import MergeCascadeExecutor, utcnow
from customer_merge.steps.classify import DuplicateClassifier
from customer_merge.steps.index import CustomerIndex, CustomerIndexBuilder
from customer_merge.steps.report import AuditReporter, DuplicateInventoryReporter

logger = logging.getLogger(__name__)


class LocalMergePipeline:
    """Sequential batch job: index, classify, report, then (in execute mode) cascade.

    ``dry_run`` and ``execute`` share :meth:`classify`, so both modes see the
    same candidates and skipped groups for the same snapshot.
    """

    def __init__(
        self,
        customers: CustomerStore,
        records: Mapping[RecordKind, RecordStore],
        reporter: AuditReporter | None = None,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._customers = customers
        self._records = records
        self._reporter = reporter
        self._config = config or EngineConfig()
        self._index_builder = CustomerIndexBuilder(self._config.authoritative_pattern)
        self._classifier = DuplicateClassifier()
        self._executor = MergeCascadeExecutor(customers, records, config=self._config, clock=clock, sleep=sleep)

    def check_stores(self) -> None:
        self._customers.ping()
        for store in self._records.values():
            store.ping()

    def build_index(self) -> CustomerIndex:
        try:
            return self._index_builder.build(self._customers.iter_all())
        except OSError as exc:
            raise StoreUnavailableError("customers", f"customer stream could not be read: {exc}") from exc

    def classify(self) -> tuple[CustomerIndex, Classification]:
        self.check_stores()
        index = self.build_index()
        return index, self._classifier.classify(index)

    def stats(self) -> CollectionStats:
        self.check_stores()
        authoritative = 0
        total = 0
        for document in self._customers.iter_all():
            total += 1
            if self._index_builder.is_authoritative(document.get(CustomerField.IDENTIFIER)):
                authoritative += 1
        stats = CollectionStats(
            customer_count=total,
            authoritative_count=authoritative,
            provisional_count=total - authoritative,
            dependent_counts={kind.value: store.count() for kind, store in self._records.items()},
        )
        logger.info(
            "Collection statistics: %d customers (%d authoritative, %d provisional), %s",
            stats.customer_count,
            stats.authoritative_count,
            stats.provisional_count,
            ", ".join(f"{kind}={count}" for kind, count in stats.dependent_counts.items()),
        )
        return stats

    def dry_run(self) -> DryRunResults:
        started = time.monotonic()
        logger.info("Starting DRY RUN with exact name matching - no changes will be made")
        _, classification = self.classify()
        report_path = self._reporter.write(classification) if self._reporter else None
        previews = [self._executor.preview(candidate) for candidate in classification.valid_candidates]
        previews.sort(key=lambda preview: preview.total, reverse=True)
        results = DryRunResults(
            classification=classification,
            previews=previews,
            report_path=str(report_path) if report_path else None,
            elapsed_seconds=time.monotonic() - started,
        )
        logger.info(
            "Dry run: %d merges would occur, %d documents would be updated",
            len(previews),
            sum(preview.total for preview in previews),
        )
        return results

    def execute(self) -> MergeResults:
        started = time.monotonic()
        logger.info("Starting customer merge process with exact name matching")
        _, classification = self.classify()
        self._executor.ensure_indexes()
        report_path = self._reporter.write(classification) if self._reporter else None

        results = MergeResults(
            skipped_authoritative_duplicates=classification.skipped_authoritative_count,
            skipped_provisional_duplicates=classification.skipped_provisional_count,
            report_path=str(report_path) if report_path else None,
        )
        self._executor.run(classification.valid_candidates, results)
        results.elapsed_seconds = time.monotonic() - started

        logger.info(
            "Merge complete in %.2fs: %d merged, %d deleted, %d errors",
            results.elapsed_seconds,
            results.total_merged,
            results.customers_deleted,
            len(results.errors),
        )
        for error in results.errors:
            logger.info(
                "  Authoritative: %s, Provisional: %s, Error: %s",
                error.authoritative_id,
                error.provisional_id,
                error.error,
            )
        return results

    def inventory(self, reporter: DuplicateInventoryReporter) -> Path:
        self.check_stores()
        return reporter.write(self.build_index())
