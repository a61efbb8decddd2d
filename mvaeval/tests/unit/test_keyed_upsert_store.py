"""
Unit tests for the keyed upsert results store.

Tests verify insert/update semantics, schema evolution, idempotence and
failure handling of the CSV-backed tables.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from mvaeval.modules.exceptions import StorageAccessError
from mvaeval.modules.keyed_upsert_store import KeyedUpsertStore, TableSchema


@pytest.fixture
def store(tmp_test_dir: Path) -> KeyedUpsertStore:
    return KeyedUpsertStore(tmp_test_dir / "results")


@pytest.mark.unit
class TestTableSchema:
    """Test the column registry."""

    def test_key_column_first(self) -> None:
        schema = TableSchema("Method", ["FoM", "MaxCut"])

        assert schema.columns == ["Method", "FoM", "MaxCut"]
        assert schema.value_columns == ["FoM", "MaxCut"]

    def test_duplicates_ignored(self) -> None:
        schema = TableSchema("Method")

        assert schema.add("FoM") is True
        assert schema.add("FoM") is False
        assert schema.add("Method") is False
        assert len(schema) == 2
        assert "FoM" in schema


@pytest.mark.unit
class TestUpsertInsert:
    """Test inserting new keys."""

    def test_creates_table(self, store: KeyedUpsertStore) -> None:
        store.upsert("Performance", "BDTG", "Method", {"MaxCut": 0.12, "FoM": 0.5})

        df = store.read_table("Performance", "Method")
        assert list(df.columns) == ["Method", "MaxCut", "FoM"]
        assert df.iloc[0]["Method"] == "BDTG"
        assert df.iloc[0]["MaxCut"] == 0.12
        assert store.table_path("Performance").exists()

    def test_new_key_appends_one_row(self, store: KeyedUpsertStore) -> None:
        store.upsert("Performance", "BDTG", "Method", {"FoM": 0.5})
        store.upsert("Performance", "MLP", "Method", {"FoM": 0.4})
        before = store.read_table("Performance", "Method")

        store.upsert("Performance", "DNN", "Method", {"FoM": 0.6})
        after = store.read_table("Performance", "Method")

        assert len(after) == len(before) + 1
        pd.testing.assert_frame_equal(after.iloc[: len(before)], before)
        assert after.iloc[-1]["Method"] == "DNN"

    def test_new_columns_default_to_zero(self, store: KeyedUpsertStore) -> None:
        store.upsert("Performance", "BDTG", "Method", {"FoM": 0.5})
        store.upsert("Performance", "MLP", "Method", {"Purity": 0.9})

        bdtg = store.get_row("Performance", "BDTG", "Method")
        mlp = store.get_row("Performance", "MLP", "Method")
        assert bdtg["Purity"] == 0.0
        assert mlp["FoM"] == 0.0
        assert mlp["Purity"] == 0.9


@pytest.mark.unit
class TestUpsertUpdate:
    """Test updating existing keys."""

    def test_update_keeps_row_count(self, store: KeyedUpsertStore) -> None:
        store.upsert("Performance", "BDTG", "Method", {"FoM": 0.5, "MaxCut": 0.1})
        store.upsert("Performance", "MLP", "Method", {"FoM": 0.4, "MaxCut": 0.2})

        store.upsert("Performance", "BDTG", "Method", {"FoM": 0.55})
        df = store.read_table("Performance", "Method")

        assert len(df) == 2
        bdtg = store.get_row("Performance", "BDTG", "Method")
        assert bdtg["FoM"] == 0.55
        assert bdtg["MaxCut"] == 0.1
        assert store.get_row("Performance", "MLP", "Method") == {
            "Method": "MLP",
            "FoM": 0.4,
            "MaxCut": 0.2,
        }

    def test_idempotent(self, store: KeyedUpsertStore) -> None:
        values = {"MaxCut": 0.123456789012345, "FoM": 1 / 3}
        store.upsert("Performance", "BDTG", "Method", values)
        first = store.table_path("Performance").read_text()

        store.upsert("Performance", "BDTG", "Method", values)

        assert store.table_path("Performance").read_text() == first

    def test_floats_round_trip_exactly(self, store: KeyedUpsertStore) -> None:
        store.upsert("Performance", "BDTG", "Method", {"FoM": 1 / 3})

        assert store.get_row("Performance", "BDTG", "Method")["FoM"] == 1 / 3

    def test_numeric_looking_keys_stay_text(self, store: KeyedUpsertStore) -> None:
        store.upsert("Runs", "007", "Run", {"FoM": 0.1})
        store.upsert("Runs", "007", "Run", {"FoM": 0.2})

        df = store.read_table("Runs", "Run")
        assert df["Run"].tolist() == ["007"]
        assert df["FoM"].tolist() == [0.2]

    @pytest.mark.parametrize("key", ["NA", "None", "null", "nan", "N/A", ""])
    def test_missing_value_like_keys_stay_keys(self, store: KeyedUpsertStore, key: str) -> None:
        store.upsert("Performance", key, "Method", {"FoM": 0.1})
        store.upsert("Performance", key, "Method", {"FoM": 0.2})
        store.upsert("Performance", "BDTG", "Method", {"FoM": 0.3})

        df = store.read_table("Performance", "Method")
        assert df["Method"].tolist() == [key, "BDTG"]
        assert df["FoM"].tolist() == [0.2, 0.3]
        assert store.get_row("Performance", key, "Method")["FoM"] == 0.2

    def test_nan_value_round_trips(self, store: KeyedUpsertStore) -> None:
        store.upsert("Performance", "BDTG", "Method", {"FoM": float("nan"), "MaxCut": 0.5})

        row = store.get_row("Performance", "BDTG", "Method")
        assert np.isnan(row["FoM"])
        assert row["MaxCut"] == 0.5

    def test_duplicate_keys_all_updated(self, store: KeyedUpsertStore) -> None:
        path = store.table_path("Performance")
        path.parent.mkdir(parents=True)
        pd.DataFrame({"Method": ["A", "A", "B"], "FoM": [0.1, 0.2, 0.3]}).to_csv(
            path, index=False
        )

        store.upsert("Performance", "A", "Method", {"FoM": 0.9})

        df = store.read_table("Performance", "Method")
        assert df["FoM"].tolist() == [0.9, 0.9, 0.3]


@pytest.mark.unit
class TestStoreReads:
    """Test read helpers."""

    def test_list_tables(self, store: KeyedUpsertStore) -> None:
        assert store.list_tables() == []

        store.upsert("Performance", "BDTG", "Method", {"FoM": 0.5})
        store.upsert("Binned", "BDTG", "Method", {"FoM": 0.5})

        assert store.list_tables() == ["Binned", "Performance"]

    def test_missing_row_is_none(self, store: KeyedUpsertStore) -> None:
        store.upsert("Performance", "BDTG", "Method", {"FoM": 0.5})

        assert store.get_row("Performance", "MLP", "Method") is None

    def test_missing_table_reads_empty(self, store: KeyedUpsertStore) -> None:
        assert store.read_table("Nothing", "Method").empty

    def test_no_temporary_files_left(self, store: KeyedUpsertStore) -> None:
        store.upsert("Performance", "BDTG", "Method", {"FoM": 0.5})

        assert [p.name for p in store.results_dir.iterdir()] == ["Performance.csv"]


@pytest.mark.validation
class TestStoreErrors:
    """Test failure handling."""

    def test_key_column_in_values_raises(self, store: KeyedUpsertStore) -> None:
        with pytest.raises(ValueError, match="Key column"):
            store.upsert("Performance", "BDTG", "Method", {"Method": 1.0})

    def test_table_without_key_column_raises(self, store: KeyedUpsertStore) -> None:
        path = store.table_path("Performance")
        path.parent.mkdir(parents=True)
        pd.DataFrame({"Name": ["A"], "FoM": [0.1]}).to_csv(path, index=False)

        with pytest.raises(StorageAccessError, match="no key column"):
            store.upsert("Performance", "A", "Method", {"FoM": 0.2})

    def test_unwritable_directory_raises(self, tmp_test_dir: Path) -> None:
        blocker = tmp_test_dir / "not_a_dir"
        blocker.write_text("")
        store = KeyedUpsertStore(blocker / "results")

        with pytest.raises(StorageAccessError):
            store.upsert("Performance", "A", "Method", {"FoM": 0.2})
