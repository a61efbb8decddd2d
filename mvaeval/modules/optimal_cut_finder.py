"""
Optimal MVA score cut from a smoothed figure of merit

Workflow:
1. Histogram the signal and background scores and sweep all bin edges
2. Interpolate efficiency, purity and FoM = efficiency × purity with splines
3. Locate the global maximum of the FoM spline over the full score range
4. Read efficiency and purity off their splines at that cut
5. Optionally log {MaxCut, Efficiency, Purity, FoM} to a keyed results table
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from .curve_smoother import CurveSmoother, SmoothedCurve
from .data_handler import DataManager
from .keyed_upsert_store import KeyedUpsertStore
from .threshold_sweep import ThresholdSweepEngine

# Relative tolerance for treating two FoM values as tied
TIE_TOLERANCE = 1e-12


@dataclass(frozen=True)
class OptimalCutResult:
    """
    Best operating point of a classifier.

    Values are read off the interpolating splines, so overshoot between nodes
    or extrapolation past the last lower bin edge can put fom, efficiency or
    purity slightly outside [0, 1].

    Attributes:
        cut: Score threshold maximising FoM
        fom: FoM at the cut
        efficiency: Signal efficiency at the cut
        purity: Signal purity at the cut
        method: Name of the MVA method (None if not given)
    """

    cut: float
    fom: float
    efficiency: float
    purity: float
    method: str | None = None

    def to_record(self) -> dict[str, float]:
        """Columns logged to the results table"""
        return {
            "MaxCut": self.cut,
            "Efficiency": self.efficiency,
            "Purity": self.purity,
            "FoM": self.fom,
        }


class OptimalCutFinder:
    """
    Find the FoM-maximising cut for a classifier score.

    Attributes:
        sweep_engine: Produces the discrete efficiency/purity/FoM curves
        smoother: Interpolates the discrete curves
        results_store: Optional sink for the results table
        results_table: Name of the results table
        key_column: Key column of the results table
    """

    def __init__(
        self,
        sweep_engine: ThresholdSweepEngine | None = None,
        smoother: CurveSmoother | None = None,
        results_store: KeyedUpsertStore | None = None,
        results_table: str = "Performance",
        key_column: str = "Method",
    ) -> None:
        self.logger: logging.Logger = logging.getLogger("MvaEval.OptimalCutFinder")
        self.sweep_engine = sweep_engine or ThresholdSweepEngine()
        self.smoother = smoother or CurveSmoother()
        self.results_store = results_store
        self.results_table = results_table
        self.key_column = key_column

    def fit_curves(
        self,
        signal: Any,
        background: Any,
        n_bins: int,
        min_score: float,
        max_score: float,
    ) -> dict[str, SmoothedCurve]:
        """
        Sweep the score range and interpolate the three metric curves.

        Returns:
            {"efficiency": curve, "purity": curve, "fom": curve}
        """
        points = self.sweep_engine.sweep(signal, background, n_bins, min_score, max_score)
        cuts = np.array([p.cut for p in points])
        domain = (min_score, max_score)

        return {
            name: self.smoother.fit(cuts, np.array([getattr(p, name) for p in points]), domain)
            for name in ("efficiency", "purity", "fom")
        }

    @staticmethod
    def maximize(curve: SmoothedCurve) -> tuple[float, float]:
        """
        Global maximum of a curve over its domain.

        The candidates are the interpolation nodes, the stationary points and
        the two domain end points; a spline attains its maximum on a closed
        interval at one of these. Ties go to the lowest cut.

        Returns:
            (x_max, curve(x_max))
        """
        low, high = curve.domain
        nodes = curve.nodes_x[(curve.nodes_x >= low) & (curve.nodes_x <= high)]
        candidates = np.unique(
            np.concatenate([[low, high], nodes, curve.critical_points(low, high)])
        )
        values = np.asarray(curve(candidates), dtype=np.float64)

        best = np.nanmax(values)
        tolerance = TIE_TOLERANCE * max(1.0, abs(best))
        index = int(np.flatnonzero(values >= best - tolerance)[0])
        return float(candidates[index]), float(values[index])

    def find_optimal_cut(
        self,
        signal: Any,
        background: Any,
        n_bins: int = 1000,
        min_score: float = -1.0,
        max_score: float = 1.0,
        method: str | None = None,
    ) -> OptimalCutResult:
        """
        Compute the cut maximising FoM = efficiency × purity.

        Args:
            signal: Signal scores (ScoreSample or 1-D numeric sequence)
            background: Background scores
            n_bins: Number of histogram bins used for the sweep
            min_score: Minimum expected score
            max_score: Maximum expected score
            method: MVA method name, used as key when logging results

        Returns:
            OptimalCutResult

        Raises:
            InputAccessError: If either sample cannot be read
            EmptyDistributionError: If the signal sample is empty in range
            StorageAccessError: If results logging is configured and fails
        """
        label = method or "MVA score"
        self.logger.info(f"Computing optimal cut for {label}")

        curves = self.fit_curves(signal, background, n_bins, min_score, max_score)
        best_cut, best_fom = self.maximize(curves["fom"])

        result = OptimalCutResult(
            cut=best_cut,
            fom=best_fom,
            efficiency=float(curves["efficiency"](best_cut)),
            purity=float(curves["purity"](best_cut)),
            method=method,
        )

        self.logger.info(
            f"[RESULT] {label}: optimal cut {result.cut:.6g} | FoM: {result.fom:.4f} | "
            f"Efficiency: {result.efficiency:.4f} | Purity: {result.purity:.4f}"
        )
        outside = [
            name
            for name in ("fom", "efficiency", "purity")
            if not 0.0 <= getattr(result, name) <= 1.0
        ]
        if outside:
            self.logger.warning(
                f"{label}: interpolated {', '.join(outside)} outside [0, 1] at cut {result.cut:.6g}"
            )

        if self.results_store is not None and method is not None:
            self.results_store.upsert(
                self.results_table, method, self.key_column, result.to_record()
            )

        return result

    def find_optimal_cut_from_file(
        self,
        input_file: str | Path,
        mva_branch: str,
        n_bins: int = 1000,
        min_score: float = -1.0,
        max_score: float = 1.0,
        data_manager: DataManager | None = None,
    ) -> OptimalCutResult:
        """
        Optimal cut for one score branch of a Signal/Background ROOT file.

        The branch name doubles as the method key in the results table.
        """
        data_manager = data_manager or DataManager()
        signal, background = data_manager.load_score_samples(input_file, mva_branch)
        return self.find_optimal_cut(
            signal, background, n_bins, min_score, max_score, method=mva_branch
        )
