"""
Classifier performance as a function of an auxiliary variable

Events are partitioned into half-open bins [lo, hi) of an auxiliary variable
(typically the true neutrino energy). Inside each bin, each MVA method is
evaluated at its fixed cut: an event is selected when score > cut.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import uproot
from tqdm import tqdm

from ..utils.logging_config import get_tqdm_kwargs
from .data_handler import DataManager, column_values
from .exceptions import InvalidBinningError, StorageAccessError
from .metrics_calculator import MetricPoint, MetricsCalculator

BIN_COLUMNS = ["binMin", "binMax", "binMid", "binCount"]
METRIC_SUFFIXES = {
    "eff": "efficiency",
    "eff_err": "eff_err",
    "pur": "purity",
    "pur_err": "pur_err",
    "fom": "fom",
    "fom_err": "fom_err",
}


@dataclass
class EnergyBin:
    """
    Metrics of all methods inside one auxiliary-variable bin.

    Attributes:
        bin_min: Inclusive lower edge
        bin_max: Exclusive upper edge
        count: Signal + background events in the bin
        metrics: Method name → MetricPoint at the method's cut
    """

    bin_min: float
    bin_max: float
    count: float
    metrics: dict[str, MetricPoint] = field(default_factory=dict)

    @property
    def bin_mid(self) -> float:
        return 0.5 * (self.bin_min + self.bin_max)

    def to_row(self, methods: list[str] | None = None) -> dict[str, float]:
        """Flat record in the energy-bin table layout"""
        row = {
            "binMin": self.bin_min,
            "binMax": self.bin_max,
            "binMid": self.bin_mid,
            "binCount": self.count,
        }
        for method in methods if methods is not None else list(self.metrics):
            point = self.metrics[method]
            for suffix, attribute in METRIC_SUFFIXES.items():
                row[f"{method}_{suffix}"] = getattr(point, attribute)
        return row


def table_columns(methods: list[str]) -> list[str]:
    """Column order of the energy-bin table"""
    columns = list(BIN_COLUMNS)
    for method in methods:
        columns.extend(f"{method}_{suffix}" for suffix in METRIC_SUFFIXES)
    return columns


def validate_bin_edges(bin_edges: Any) -> np.ndarray:
    """
    Raises:
        InvalidBinningError: If fewer than two edges or edges not strictly increasing
    """
    edges = np.asarray(bin_edges, dtype=np.float64)
    if edges.ndim != 1 or len(edges) < 2:
        raise InvalidBinningError(
            f"At least two bin edges are required, got {edges.size}"
        )
    if not np.all(np.isfinite(edges)):
        raise InvalidBinningError("Bin edges must be finite")
    if np.any(np.diff(edges) <= 0):
        raise InvalidBinningError(f"Bin edges must be strictly increasing: {edges.tolist()}")
    return edges


class EnergyBinTableWriter:
    """
    Append-only writer for energy-bin rows.

    A path ending in .root gets a TTree (tree_name) written with uproot,
    anything else a CSV file. The output is recreated when opened and removed
    if the with-block exits with an exception.

    Usage:
        with EnergyBinTableWriter("bins.root", ["BDT"]) as writer:
            writer.append(energy_bin)
    """

    def __init__(self, path: str | Path, methods: list[str], tree_name: str = "data") -> None:
        self.path = Path(path)
        self.methods = list(methods)
        self.tree_name = tree_name
        self.columns = table_columns(self.methods)
        self.rows_written = 0
        self._file = None
        self._tree = None

    @property
    def is_root(self) -> bool:
        return self.path.suffix == ".root"

    def open(self) -> EnergyBinTableWriter:
        """
        Raises:
            StorageAccessError: If the output cannot be created
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self.is_root:
                self._file = uproot.recreate(self.path)
                self._tree = self._file.mktree(
                    self.tree_name, {column: np.float64 for column in self.columns}
                )
            else:
                pd.DataFrame(columns=self.columns).to_csv(self.path, index=False)
        except OSError as e:
            raise StorageAccessError(f"Cannot create energy-bin table {self.path}: {e}")
        return self

    def append(self, energy_bin: EnergyBin) -> None:
        row = energy_bin.to_row(self.methods)
        try:
            if self.is_root:
                if self._tree is None:
                    raise StorageAccessError(f"Energy-bin table {self.path} is not open")
                self._tree.extend({c: np.array([row[c]], dtype=np.float64) for c in self.columns})
            else:
                pd.DataFrame([row], columns=self.columns).to_csv(
                    self.path, mode="a", header=False, index=False, float_format="%.17g"
                )
        except OSError as e:
            raise StorageAccessError(f"Failed to append to {self.path}: {e}")
        self.rows_written += 1

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self._tree = None

    def __enter__(self) -> EnergyBinTableWriter:
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
        if exc_type is not None and self.path.exists():
            self.path.unlink()
            self.rows_written = 0


class EnergyBinnedEvaluator:
    """
    Per-bin efficiency, purity and FoM for a set of methods at fixed cuts.

    Attributes:
        logger: Logger instance for this class
        calculator: Metrics calculator used in every bin
    """

    def __init__(self, calculator: MetricsCalculator | None = None) -> None:
        self.logger: logging.Logger = logging.getLogger("MvaEval.EnergyBinnedEvaluator")
        self.calculator = calculator or MetricsCalculator()

    def evaluate_binned(
        self,
        signal: Any,
        background: Any,
        aux_variable: str,
        bin_edges: Any,
        method_cuts: dict[str, float],
        writer: EnergyBinTableWriter | None = None,
    ) -> list[EnergyBin]:
        """
        Evaluate every method in every bin of aux_variable.

        Args:
            signal: Signal events (awkward record array, DataFrame or mapping of arrays)
            background: Background events, same columns as signal
            aux_variable: Column used for binning (e.g. "TrueNuE")
            bin_edges: Strictly increasing bin edges (at least two)
            method_cuts: Method (score column) name → cut value
            writer: Optional open table writer; one row per bin is written once all
                    bins are evaluated

        Returns:
            One EnergyBin per consecutive edge pair, in edge order

        Raises:
            InvalidBinningError: If the edges are malformed
            BranchMissingError: If aux_variable or a method column is missing
        """
        edges = validate_bin_edges(bin_edges)
        methods = list(method_cuts)

        sig_aux = column_values(signal, aux_variable)
        bkg_aux = column_values(background, aux_variable)
        sig_scores = {m: column_values(signal, m) for m in methods}
        bkg_scores = {m: column_values(background, m) for m in methods}

        bins: list[EnergyBin] = []
        edge_pairs = list(zip(edges[:-1], edges[1:]))
        for bin_min, bin_max in tqdm(edge_pairs, **get_tqdm_kwargs("Energy bins", unit="bin")):
            sig_in_bin = (sig_aux >= bin_min) & (sig_aux < bin_max)
            bkg_in_bin = (bkg_aux >= bin_min) & (bkg_aux < bin_max)
            n_sig_total = float(np.count_nonzero(sig_in_bin))
            n_bkg_total = float(np.count_nonzero(bkg_in_bin))

            energy_bin = EnergyBin(
                bin_min=float(bin_min),
                bin_max=float(bin_max),
                count=n_sig_total + n_bkg_total,
            )
            self.logger.debug(
                f"Bin [{bin_min}, {bin_max}) | Signal: {n_sig_total:.0f} | "
                f"Background: {n_bkg_total:.0f}"
            )

            for method, cut in method_cuts.items():
                n_sig = float(np.count_nonzero(sig_in_bin & (sig_scores[method] > cut)))
                n_bkg = float(np.count_nonzero(bkg_in_bin & (bkg_scores[method] > cut)))
                energy_bin.metrics[method] = self.calculator.compute(
                    n_sig, n_bkg, n_sig_total, cut=cut
                )

            bins.append(energy_bin)

        if writer is not None:
            for energy_bin in bins:
                writer.append(energy_bin)

        self.logger.info(f"Evaluated {len(methods)} method(s) in {len(bins)} {aux_variable} bins")
        return bins

    def evaluate_binned_from_file(
        self,
        input_file: str | Path,
        aux_variable: str,
        bin_edges: Any,
        method_cuts: dict[str, float],
        output_file: str | Path | None = None,
        data_manager: DataManager | None = None,
    ) -> list[EnergyBin]:
        """
        Load Signal/Background trees, evaluate, and optionally write the table.

        Raises:
            InputAccessError: If the input file or a branch is unavailable
            StorageAccessError: If the output table cannot be written
        """
        validate_bin_edges(bin_edges)
        data_manager = data_manager or DataManager()
        branches = [aux_variable, *method_cuts]
        signal, background = data_manager.load_signal_background(input_file, branches)

        bins = self.evaluate_binned(signal, background, aux_variable, bin_edges, method_cuts)
        if output_file is None:
            return bins

        with EnergyBinTableWriter(output_file, list(method_cuts)) as writer:
            for energy_bin in bins:
                writer.append(energy_bin)
        self.logger.info(f"Energy-bin table written to {output_file}")
        return bins


def to_dataframe(bins: list[EnergyBin], methods: list[str]) -> pd.DataFrame:
    """Energy bins as a DataFrame in table layout"""
    return pd.DataFrame([b.to_row(methods) for b in bins], columns=table_columns(methods))
