from __future__ import annotations

import argparse
from pathlib import Path

from customer_merge.datasets import ReferenceDatasetGenerator
from customer_merge.stores import Snapshot, save_snapshot


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a synthetic CRM snapshot with cross-source duplicates")
    parser.add_argument("--size", type=int, default=5000)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--duplicate-rate", type=float, default=0.3)
    parser.add_argument("--ambiguous-rate", type=float, default=0.1)
    parser.add_argument("--output-dir", type=Path, default=Path("data/reference_snapshot"))
    args = parser.parse_args()

    dataset = ReferenceDatasetGenerator(seed=args.seed).generate(
        size=args.size,
        duplicate_rate=args.duplicate_rate,
        ambiguous_rate=args.ambiguous_rate,
    )
    save_snapshot(Snapshot.from_documents(dataset.customers, dataset.records), args.output_dir)


if __name__ == "__main__":
    main()
