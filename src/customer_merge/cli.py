from __future__ import annotations

import argparse
import csv
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

from customer_merge.config import EngineConfig
from customer_merge.datasets import MAX_AUTHORITATIVE_CUSTOMERS, ReferenceDatasetGenerator
from customer_merge.errors import InvalidConfigError, StoreUnavailableError
from customer_merge.models import DryRunResults, GapFillResults, MergeResults
from customer_merge.runners import LocalMergePipeline
from customer_merge.sinks import ExcelReportSink
from customer_merge.steps import AuditReporter, DuplicateInventoryReporter, GapFillingMatcher, contacts_from_rows
from customer_merge.stores import Snapshot, load_snapshot, save_snapshot

_PREVIEW_LIMIT = 10


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        return
    if args.command == "generate" and args.size > MAX_AUTHORITATIVE_CUSTOMERS:
        parser.error(f"--size must not exceed {MAX_AUTHORITATIVE_CUSTOMERS}")

    _configure_logging(args.verbose)
    try:
        config = EngineConfig.from_env().with_overrides(
            batch_size=getattr(args, "batch_size", None),
            bulk_write_batch_size=getattr(args, "bulk_write_batch_size", None),
            batch_delay_seconds=getattr(args, "batch_delay", None),
            report_dir=getattr(args, "report_dir", None),
        )
        _dispatch(args, config)
    except (StoreUnavailableError, InvalidConfigError) as exc:
        logging.getLogger(__name__).error("%s", exc)
        raise SystemExit(1) from exc


def _dispatch(args: argparse.Namespace, config: EngineConfig) -> None:
    if args.command == "generate":
        generate(size=args.size, seed=args.seed, duplicate_rate=args.duplicate_rate, output_dir=args.output_dir)
    elif args.command == "stats":
        stats(snapshot_dir=args.snapshot_dir, config=config)
    elif args.command == "dry-run":
        dry_run(snapshot_dir=args.snapshot_dir, config=config)
    elif args.command == "execute":
        execute(snapshot_dir=args.snapshot_dir, output_dir=args.output_dir or args.snapshot_dir, config=config)
    elif args.command == "duplicates-report":
        duplicates_report(snapshot_dir=args.snapshot_dir, config=config)
    elif args.command == "fill-gaps":
        fill_gaps(
            snapshot_dir=args.snapshot_dir,
            contacts_csv=args.contacts_csv,
            output_dir=args.output_dir or args.snapshot_dir,
            config=config,
        )


def generate(*, size: int, seed: int, duplicate_rate: float, output_dir: Path) -> None:
    dataset = ReferenceDatasetGenerator(seed=seed).generate(size=size, duplicate_rate=duplicate_rate)
    save_snapshot(Snapshot.from_documents(dataset.customers, dataset.records), output_dir)
    print(f"Snapshot: {output_dir}")
    print(f"customers={len(dataset.customers)}")
    for kind, records in dataset.records.items():
        print(f"{kind.value}={len(records)}")


def stats(*, snapshot_dir: Path, config: EngineConfig) -> None:
    snapshot = load_snapshot(snapshot_dir)
    result = _pipeline(snapshot, config, with_report=False).stats()
    print(f"customers={result.customer_count}")
    print(f"authoritative_customers={result.authoritative_count}")
    print(f"provisional_customers={result.provisional_count}")
    for kind, count in result.dependent_counts.items():
        print(f"{kind}={count}")


def dry_run(*, snapshot_dir: Path, config: EngineConfig) -> DryRunResults:
    snapshot = load_snapshot(snapshot_dir)
    results = _pipeline(snapshot, config).dry_run()
    classification = results.classification
    totals = results.totals()

    print(f"Report: {results.report_path}")
    print("---")
    print(f"merges={len(results.previews)}")
    print(f"documents_to_update={sum(totals.values())}")
    for kind, count in totals.items():
        print(f"{kind}_to_update={count}")
    print(f"customers_to_delete={len(results.previews)}")
    print(f"skipped_authoritative_duplicates={classification.skipped_authoritative_count}")
    print(f"skipped_provisional_duplicates={classification.skipped_provisional_count}")
    if results.previews:
        print("---")
        print("top_merges=")
        print(json.dumps(_preview_payload(results, limit=_PREVIEW_LIMIT), indent=2))
    return results


def execute(*, snapshot_dir: Path, output_dir: Path, config: EngineConfig) -> MergeResults:
    snapshot = load_snapshot(snapshot_dir)
    results = _pipeline(snapshot, config).execute()
    save_snapshot(snapshot, output_dir)

    summary_path = config.report_dir / "merge_summary.json"
    _write_json(summary_path, _merge_summary(results))

    print(f"Snapshot: {output_dir}")
    print(f"Report: {results.report_path}")
    print(f"Summary: {summary_path}")
    print("---")
    print(f"candidates_processed={results.candidates_processed}")
    print(f"customers_merged={results.total_merged}")
    print(f"already_merged={results.already_merged}")
    for kind, count in results.updated.items():
        print(f"{kind}_updated={count}")
    print(f"customers_deleted={results.customers_deleted}")
    print(f"errors={len(results.errors)}")
    return results


def duplicates_report(*, snapshot_dir: Path, config: EngineConfig) -> Path:
    snapshot = load_snapshot(snapshot_dir)
    reporter = DuplicateInventoryReporter(ExcelReportSink(config.report_dir))
    path = _pipeline(snapshot, config, with_report=False).inventory(reporter)
    print(f"Report: {path}")
    return path


def fill_gaps(*, snapshot_dir: Path, contacts_csv: Path, output_dir: Path, config: EngineConfig) -> GapFillResults:
    snapshot = load_snapshot(snapshot_dir)
    snapshot.customers.ping()
    contacts = contacts_from_rows(_read_rows_csv(contacts_csv), config=config)
    results = GapFillingMatcher(snapshot.customers, config=config).fill(contacts)
    save_snapshot(snapshot, output_dir)

    print(f"Snapshot: {output_dir}")
    print("---")
    print(f"contacts={results.total_contacts}")
    print(f"emails_updated={results.emails_updated}")
    print(f"matched_by_phone={results.matched_by_phone}")
    print(f"matched_by_name={results.matched_by_name}")
    print(f"no_matches={results.no_matches}")
    print(f"phones_added_to_existing={results.phones_added_to_existing}")
    print(f"errors={len(results.errors)}")
    return results


def _pipeline(snapshot: Snapshot, config: EngineConfig, with_report: bool = True) -> LocalMergePipeline:
    reporter = AuditReporter(ExcelReportSink(config.report_dir)) if with_report else None
    return LocalMergePipeline(snapshot.customers, snapshot.records, reporter=reporter, config=config)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="customer-merge", description="Customer identity merge CLI")
    parser.add_argument("--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command")

    generate_parser = subparsers.add_parser("generate", help="Write a synthetic snapshot with intentional duplicates")
    generate_parser.add_argument("--size", type=int, default=200)
    generate_parser.add_argument("--seed", type=int, default=42)
    generate_parser.add_argument("--duplicate-rate", type=float, default=0.3)
    generate_parser.add_argument("--output-dir", type=Path, default=Path("data/snapshot"))

    for name, help_text in (
        ("stats", "Count customers by origin and dependent records by kind"),
        ("dry-run", "Classify duplicates, write the audit report and preview merges without changes"),
        ("execute", "Classify duplicates, write the audit report and merge accepted candidates"),
        ("duplicates-report", "Write a complete duplicate inventory workbook"),
        ("fill-gaps", "Fill missing emails and phones from an external contact export"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--snapshot-dir", type=Path, required=True)
        sub.add_argument("--report-dir", type=Path, default=None)
        if name == "execute":
            sub.add_argument("--output-dir", type=Path, default=None)
            sub.add_argument("--batch-size", type=int, default=None)
            sub.add_argument("--bulk-write-batch-size", type=int, default=None)
            sub.add_argument("--batch-delay", type=float, default=None)
        if name == "fill-gaps":
            sub.add_argument("--contacts-csv", type=Path, required=True)
            sub.add_argument("--output-dir", type=Path, default=None)

    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _preview_payload(results: DryRunResults, limit: int) -> list[dict[str, Any]]:
    return [
        {
            "authoritative": {"code": preview.authoritative_id, "name": preview.authoritative_name},
            "provisional": {"code": preview.provisional_id, "name": preview.provisional_name},
            "documents_to_merge": {**preview.documents, "total": preview.total},
        }
        for preview in results.previews[:limit]
    ]


def _merge_summary(results: MergeResults) -> dict[str, object]:
    payload = asdict(results)
    payload.pop("outcomes")
    payload["elapsed_seconds"] = round(results.elapsed_seconds, 3)
    return payload


def _write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2)


def _read_rows_csv(path: Path) -> list[dict[str, str]]:
    with path.open("r", newline="", encoding="utf-8") as handle:
        return [dict(row) for row in csv.DictReader(handle)]


if __name__ == "__main__":
    main()
