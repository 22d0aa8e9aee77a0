"""
Export utilities for persona batches.

Supports:
- JSON array and JSON Lines
- CSV
- Parquet
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from .exceptions import ExportError
from .models import Persona

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("json", "jsonl", "csv", "parquet")
LIST_COLUMNS = ("politicalPolicies",)


def _records(personas: List[Persona], drop_fields: Optional[Iterable[str]] = None) -> List[dict]:
    drop = set(drop_fields or [])
    return [
        {k: v for k, v in p.model_dump(mode="json", by_alias=True).items() if k not in drop}
        for p in personas
    ]


class JSONExporter:
    """Export personas to JSON/JSONL format."""

    def export_json(self, personas: List[Persona], filepath: str, indent: int = 2,
                    drop_fields: Optional[List[str]] = None) -> None:
        """
        Export as single JSON array.

        Args:
            personas: List of personas
            filepath: Output file path
            indent: JSON indentation
            drop_fields: Optional list of camelCase fields to exclude
        """
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(_records(personas, drop_fields), f, indent=indent, ensure_ascii=False)

    def export_jsonl(self, personas: List[Persona], filepath: str,
                     drop_fields: Optional[List[str]] = None) -> None:
        """Export as JSON Lines (one JSON object per line)."""
        with open(filepath, "w", encoding="utf-8") as f:
            for record in _records(personas, drop_fields):
                f.write(json.dumps(record, ensure_ascii=False) + "\n")


class CSVExporter:
    """Export personas to CSV format."""

    def export(self, personas: List[Persona], filepath: str,
               separator: str = ",", drop_fields: Optional[List[str]] = None) -> None:
        """
        Export to CSV.

        List columns are joined with "|".
        """
        df = pd.DataFrame(_records(personas, drop_fields))
        for col in LIST_COLUMNS:
            if col in df.columns:
                df[col] = df[col].apply(lambda x: "|".join(x) if x else "")
        df.to_csv(filepath, sep=separator, index=False, encoding="utf-8")


class ParquetExporter:
    """Export personas to Apache Parquet format."""

    def __init__(self, compression: str = "snappy"):
        """
        Initialize exporter.

        Args:
            compression: Compression codec (snappy, gzip, brotli, etc.)
        """
        self.compression = compression

    def export(self, personas: List[Persona], filepath: str,
               drop_fields: Optional[List[str]] = None) -> None:
        df = pd.DataFrame(_records(personas, drop_fields))
        for col in LIST_COLUMNS:
            if col in df.columns:
                df[col] = df[col].apply(lambda x: json.dumps(x, ensure_ascii=False) if x else "[]")
        df.to_parquet(filepath, compression=self.compression, engine="pyarrow", index=False)


def export_formats(
    personas: List[Persona],
    output_dir: str,
    basename: str = "constituents",
    formats: Optional[Iterable[str]] = None,
    drop_fields: Optional[Iterable[str]] = None,
) -> Dict[str, str]:
    """
    Export personas to selected formats.

    Args:
        personas: List of personas
        output_dir: Output directory (created if missing)
        basename: Base filename (without extension)
        formats: Iterable of formats ("json", "jsonl", "csv", "parquet"); default json
        drop_fields: Optional camelCase fields to exclude

    Returns:
        Dict mapping format name to file path

    Raises:
        ExportError: On an unknown format or a write failure
    """
    formats = [f.lower() for f in (formats or ["json"])]
    unknown = [f for f in formats if f not in SUPPORTED_FORMATS]
    if unknown:
        raise ExportError(f"Unsupported export format(s): {', '.join(unknown)}", format=unknown[0])

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    drop = list(drop_fields or [])
    written: Dict[str, str] = {}

    for fmt in formats:
        target = output_path / f"{basename}.{fmt}"
        try:
            if fmt == "json":
                JSONExporter().export_json(personas, str(target), drop_fields=drop)
            elif fmt == "jsonl":
                JSONExporter().export_jsonl(personas, str(target), drop_fields=drop)
            elif fmt == "csv":
                CSVExporter().export(personas, str(target), drop_fields=drop)
            elif fmt == "parquet":
                ParquetExporter().export(personas, str(target), drop_fields=drop)
        except (OSError, ValueError, ImportError) as e:
            raise ExportError(f"Failed to write {fmt}: {e}", format=fmt, output_path=str(target)) from e
        logger.info(f"Exported {len(personas)} personas to {target}")
        written[fmt] = str(target)

    return written
