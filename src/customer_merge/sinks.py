from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

import pandas as pd

from customer_merge.models import Table

# Excel caps worksheet names at 31 characters.
_MAX_SHEET_NAME = 31


class ExcelReportSink:
    """Writes each table as one worksheet of ``<output_dir>/<name>.xlsx``."""

    def __init__(self, output_dir: Path) -> None:
        self._output_dir = Path(output_dir)

    def write(self, name: str, tables: Mapping[str, Table]) -> Path:
        self._output_dir.mkdir(parents=True, exist_ok=True)
        path = self._output_dir / f"{name}.xlsx"
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for sheet_name, table in tables.items():
                frame = pd.DataFrame(table.rows, columns=table.columns)
                frame.to_excel(writer, sheet_name=sheet_name[:_MAX_SHEET_NAME], index=False)
        return path
