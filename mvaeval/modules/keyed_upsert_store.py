"""
Keyed results tables with insert-or-update semantics

Each table is a CSV file <results_dir>/<table>.csv whose first column is the
key column. An upsert rewrites the whole table: the row matching the key gets
the supplied columns updated, otherwise a new row is appended. Columns seen for
the first time are added to every row with default 0.0.

Writes go to a temporary file in the same directory which then replaces the
table, so a failed write never leaves a truncated table behind.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import pandas as pd

from .exceptions import StorageAccessError

DEFAULT_VALUE = 0.0

# Missing-value markers for value columns; key columns are read verbatim
VALUE_NA_VALUES = ["", "nan", "NaN", "NA"]


class TableSchema:
    """
    Ordered, duplicate-free list of column names.

    The key column is always first; other columns keep their order of first
    appearance.
    """

    def __init__(self, key_column: str, columns: list[str] | None = None) -> None:
        self.key_column = key_column
        self._columns: list[str] = [key_column]
        self._known: set[str] = {key_column}
        for column in columns or []:
            self.add(column)

    def add(self, column: str) -> bool:
        """Register a column, returning True if it was new"""
        if column in self._known:
            return False
        self._columns.append(column)
        self._known.add(column)
        return True

    def __contains__(self, column: str) -> bool:
        return column in self._known

    def __len__(self) -> int:
        return len(self._columns)

    @property
    def columns(self) -> list[str]:
        return list(self._columns)

    @property
    def value_columns(self) -> list[str]:
        return self._columns[1:]


class KeyedUpsertStore:
    """
    Directory of CSV results tables keyed by a string column.

    Attributes:
        results_dir: Directory holding one CSV per table
        logger: Logger instance for this class
    """

    def __init__(self, results_dir: str | Path) -> None:
        self.results_dir = Path(results_dir)
        self.logger: logging.Logger = logging.getLogger("MvaEval.KeyedUpsertStore")

    def table_path(self, table: str) -> Path:
        return self.results_dir / f"{table}.csv"

    def list_tables(self) -> list[str]:
        """Names of all tables in the store"""
        if not self.results_dir.is_dir():
            return []
        return sorted(p.stem for p in self.results_dir.glob("*.csv"))

    def read_table(self, table: str, key_column: str | None = None) -> pd.DataFrame:
        """
        Load a table.

        Args:
            table: Table name
            key_column: If given, the column must exist and is read as text
                        without missing-value parsing ("NA", "None" and "" stay keys)

        Returns:
            DataFrame with the table contents (empty if the table does not exist)

        Raises:
            StorageAccessError: If the table cannot be parsed or lacks key_column
        """
        path = self.table_path(table)
        if not path.exists():
            return pd.DataFrame(columns=[key_column] if key_column else [])

        try:
            if key_column:
                header = pd.read_csv(path, nrows=0).columns
                df = pd.read_csv(
                    path,
                    dtype={key_column: str},
                    keep_default_na=False,
                    na_values={c: VALUE_NA_VALUES for c in header if c != key_column},
                    float_precision="round_trip",
                )
            else:
                df = pd.read_csv(path, float_precision="round_trip")
        except (OSError, ValueError, pd.errors.ParserError) as e:
            raise StorageAccessError(f"Cannot read results table {path}: {e}")

        if key_column and key_column not in df.columns:
            raise StorageAccessError(
                f"Results table {path} has no key column '{key_column}'. "
                f"Columns: {list(df.columns)}"
            )
        return df

    def get_row(self, table: str, key: str, key_column: str) -> dict[str, Any] | None:
        """First row whose key_column equals key, or None"""
        df = self.read_table(table, key_column)
        matches = df[df[key_column] == key]
        if matches.empty:
            return None
        return matches.iloc[0].to_dict()

    def upsert(
        self, table: str, key: str, key_column: str, values: dict[str, float]
    ) -> pd.DataFrame:
        """
        Insert or update the row identified by key.

        Args:
            table: Table name
            key: Key value (e.g. method name)
            key_column: Name of the key column
            values: Column name → value to store

        Returns:
            The table as written

        Raises:
            ValueError: If key_column also appears in values
            StorageAccessError: If the table cannot be read or written
        """
        if key_column in values:
            raise ValueError(f"Key column '{key_column}' cannot also be a value column")

        existing = self.read_table(table, key_column)
        schema = TableSchema(key_column, [c for c in existing.columns if c != key_column])
        new_columns = [column for column in values if schema.add(column)]

        df = existing.reindex(columns=schema.columns)
        for column in new_columns:
            df[column] = DEFAULT_VALUE

        matches = df[key_column] == key
        n_matches = int(matches.sum())
        if n_matches == 0:
            row = {column: DEFAULT_VALUE for column in schema.value_columns}
            row.update(values)
            row[key_column] = key
            new_row = pd.DataFrame([row], columns=schema.columns)
            df = new_row if df.empty else pd.concat([df, new_row], ignore_index=True)
            self.logger.info(f"Inserted '{key}' into {table}")
        else:
            if n_matches > 1:
                self.logger.warning(
                    f"Key '{key}' appears {n_matches} times in {table}; updating all"
                )
            for column, value in values.items():
                df.loc[matches, column] = value
            self.logger.info(f"Updated '{key}' in {table}")

        self._write_atomic(df, self.table_path(table))
        return df

    def _write_atomic(self, df: pd.DataFrame, path: Path) -> None:
        """Write to a temporary file next to path, then replace path"""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{path.stem}.", suffix=".tmp", dir=path.parent
            )
            os.close(fd)
        except OSError as e:
            raise StorageAccessError(f"Cannot open results directory {path.parent}: {e}")

        temp_path = Path(temp_name)
        try:
            df.to_csv(temp_path, index=False, float_format="%.17g")
            os.replace(temp_path, path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise StorageAccessError(f"Failed to write results table {path}: {e}")
