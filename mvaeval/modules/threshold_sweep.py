"""
Threshold sweep over MVA score distributions

Builds fixed-width histograms of the signal and background scores and walks
the bin edges from low to high, computing efficiency, purity and FoM of the
selection "score >= lower edge of bin i" at every step. The selected counts are
tail sums of the histograms, so the efficiency curve is non-increasing in the
cut by construction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import awkward as ak
import numpy as np
import pandas as pd

from .exceptions import EmptyDistributionError, InputAccessError, InvalidBinningError
from .metrics_calculator import MetricPoint, MetricsCalculator

SIGNAL = "signal"
BACKGROUND = "background"


@dataclass(frozen=True, eq=False)
class ScoreSample:
    """
    Immutable set of classifier scores for one true class.

    Attributes:
        scores: Read-only float64 array of finite scores
        label: "signal" or "background"
    """

    scores: np.ndarray
    label: str = SIGNAL

    @classmethod
    def from_values(cls, values: Any, label: str = SIGNAL) -> ScoreSample:
        """
        Build a sample from any one-dimensional numeric sequence.

        Accepts numpy arrays, lists, pandas Series and flat awkward arrays.
        Non-finite scores (nan, ±inf) are dropped.

        Raises:
            InputAccessError: If values is missing or not a flat numeric sequence
        """
        if isinstance(values, ScoreSample):
            return values
        if values is None:
            raise InputAccessError(f"No {label} sample provided")

        try:
            if isinstance(values, ak.Array):
                array = np.asarray(ak.to_numpy(values), dtype=np.float64)
            else:
                array = np.asarray(values, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InputAccessError(f"Cannot read {label} sample as numeric scores: {e}")

        if array.ndim != 1:
            raise InputAccessError(
                f"{label.capitalize()} sample must be one-dimensional, got shape {array.shape}"
            )

        array = array[np.isfinite(array)].copy()
        array.setflags(write=False)
        return cls(scores=array, label=label)

    def __len__(self) -> int:
        return len(self.scores)

    @property
    def is_empty(self) -> bool:
        return len(self.scores) == 0

    def summary(self) -> dict[str, float]:
        """Count, minimum and maximum of the scores"""
        if self.is_empty:
            return {"count": 0, "min": float("nan"), "max": float("nan")}
        return {
            "count": len(self.scores),
            "min": float(self.scores.min()),
            "max": float(self.scores.max()),
        }


@dataclass(frozen=True, eq=False)
class Histogram1D:
    """
    Fixed-width histogram over [min_score, max_score).

    Bins are half-open; a score equal to max_score goes to overflow, as for
    ROOT TH1. counts.sum() + underflow + overflow equals the sample size.
    """

    edges: np.ndarray
    counts: np.ndarray
    underflow: float = 0.0
    overflow: float = 0.0
    _tail: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        # tail[i] = sum(counts[i:])
        tail = np.cumsum(self.counts[::-1])[::-1]
        object.__setattr__(self, "_tail", tail)

    @classmethod
    def fill(
        cls, sample: ScoreSample, n_bins: int, min_score: float, max_score: float
    ) -> Histogram1D:
        """
        Bin a score sample.

        Raises:
            InvalidBinningError: If n_bins < 1 or the range is empty
        """
        validate_binning(n_bins, min_score, max_score)
        n_bins = int(n_bins)

        edges = np.linspace(min_score, max_score, n_bins + 1)
        scores = sample.scores

        # Same index arithmetic as TAxis::FindFixBin
        index = np.floor((scores - min_score) * n_bins / (max_score - min_score)).astype(np.int64)
        underflow = np.count_nonzero(index < 0)
        overflow = np.count_nonzero(index >= n_bins)
        in_range = index[(index >= 0) & (index < n_bins)]
        counts = np.bincount(in_range, minlength=n_bins).astype(np.float64)

        return cls(
            edges=edges, counts=counts, underflow=float(underflow), overflow=float(overflow)
        )

    @property
    def n_bins(self) -> int:
        return len(self.counts)

    @property
    def lower_edges(self) -> np.ndarray:
        return self.edges[:-1]

    def integral(self, first: int = 1, last: int | None = None) -> float:
        """
        Sum of bin contents from bin `first` to bin `last` inclusive (1-based).
        """
        last = self.n_bins if last is None else last
        if first > last:
            return 0.0
        return float(self.counts[first - 1:last].sum())

    def tail_integrals(self) -> np.ndarray:
        """Array whose element i is integral(i + 1, n_bins)"""
        return self._tail.copy()

    def total_mass(self) -> float:
        return float(self.counts.sum() + self.underflow + self.overflow)


def validate_binning(n_bins: int, min_score: float, max_score: float) -> None:
    """Raise InvalidBinningError for an unusable histogram definition"""
    if int(n_bins) != n_bins or n_bins < 1:
        raise InvalidBinningError(f"Number of bins must be a positive integer, got {n_bins}")
    if not np.isfinite(min_score) or not np.isfinite(max_score):
        raise InvalidBinningError(f"Score range must be finite, got [{min_score}, {max_score}]")
    if max_score <= min_score:
        raise InvalidBinningError(
            f"Score range is empty: min_score={min_score} >= max_score={max_score}"
        )


class ThresholdSweepEngine:
    """
    Scan all histogram bin edges as candidate cuts.

    Attributes:
        logger: Logger instance for this class
        calculator: Metrics calculator used for every sweep point
    """

    def __init__(self, calculator: MetricsCalculator | None = None) -> None:
        self.logger: logging.Logger = logging.getLogger("MvaEval.ThresholdSweepEngine")
        self.calculator: MetricsCalculator = calculator or MetricsCalculator()

    def build_histograms(
        self,
        signal: Any,
        background: Any,
        n_bins: int,
        min_score: float,
        max_score: float,
    ) -> tuple[Histogram1D, Histogram1D]:
        """Histogram both samples over the shared score range"""
        signal_sample = ScoreSample.from_values(signal, SIGNAL)
        background_sample = ScoreSample.from_values(background, BACKGROUND)

        h_signal = Histogram1D.fill(signal_sample, n_bins, min_score, max_score)
        h_background = Histogram1D.fill(background_sample, n_bins, min_score, max_score)

        if h_signal.underflow or h_signal.overflow:
            self.logger.debug(
                f"Signal scores outside [{min_score}, {max_score}]: "
                f"{h_signal.underflow:.0f} underflow, {h_signal.overflow:.0f} overflow"
            )
        return h_signal, h_background

    def sweep(
        self,
        signal: Any,
        background: Any,
        n_bins: int = 1000,
        min_score: float = -1.0,
        max_score: float = 1.0,
    ) -> list[MetricPoint]:
        """
        Compute metrics at every lower bin edge.

        Args:
            signal: Signal scores (ScoreSample or 1-D numeric sequence)
            background: Background scores
            n_bins: Number of histogram bins, i.e. number of candidate cuts
            min_score: Lower end of the score range
            max_score: Upper end of the score range

        Returns:
            n_bins MetricPoints ordered by ascending cut

        Raises:
            EmptyDistributionError: If no signal falls inside the score range
            InvalidBinningError: If the histogram definition is invalid
            InputAccessError: If a sample cannot be read
        """
        h_signal, h_background = self.build_histograms(
            signal, background, n_bins, min_score, max_score
        )

        total_signal = h_signal.integral()
        if total_signal <= 0:
            raise EmptyDistributionError(
                "Signal histogram is empty. Cannot compute FoM "
                f"(range [{min_score}, {max_score}], {n_bins} bins)"
            )

        cuts = h_signal.lower_edges
        tp = h_signal.tail_integrals()
        fp = h_background.tail_integrals()
        metrics = self.calculator.compute_arrays(tp, fp, total_signal)

        points = [
            MetricPoint(
                cut=float(cuts[i]),
                efficiency=float(metrics["efficiency"][i]),
                purity=float(metrics["purity"][i]),
                fom=float(metrics["fom"][i]),
                eff_err=float(metrics["eff_err"][i]),
                pur_err=float(metrics["pur_err"][i]),
                fom_err=float(metrics["fom_err"][i]),
            )
            for i in range(len(cuts))
        ]

        self.logger.debug(
            f"Swept {len(points)} cuts over [{min_score}, {max_score}] "
            f"(signal={total_signal:.0f}, background={h_background.integral():.0f})"
        )
        return points


def to_dataframe(points: list[MetricPoint]) -> pd.DataFrame:
    """Sweep points as a DataFrame with one row per cut"""
    columns = ["cut", "efficiency", "purity", "fom", "eff_err", "pur_err", "fom_err"]
    return pd.DataFrame([p.to_dict() for p in points], columns=columns)
