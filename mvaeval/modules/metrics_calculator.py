"""
Efficiency, purity and figure-of-merit calculation

Turns raw counts of selected signal/background events into the performance
metrics used throughout the evaluation, together with their binomial
uncertainties:

    ε   = N_sig / N_sig,total
    p   = N_sig / (N_sig + N_bkg)
    FoM = ε × p

    σ_ε   = sqrt(ε(1-ε) / N_sig,total)
    σ_p   = sqrt(p(1-p) / (N_sig + N_bkg))
    σ_FoM = sqrt((p σ_ε)² + (ε σ_p)²)

The FoM error treats ε and p as independent (first-order propagation without
the covariance term). A zero denominator gives 0 for the affected quantity,
never an exception.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

import numpy as np


@dataclass(frozen=True)
class MetricPoint:
    """
    Performance metrics at a single score cut.

    Attributes:
        cut: Score threshold (nan when the metrics are not tied to a cut)
        efficiency: Fraction of signal passing the cut
        purity: Fraction of selected events that are signal
        fom: efficiency × purity
        eff_err: Binomial error on efficiency
        pur_err: Binomial error on purity
        fom_err: Propagated error on FoM
    """

    cut: float
    efficiency: float
    purity: float
    fom: float
    eff_err: float
    pur_err: float
    fom_err: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


class MetricsCalculator:
    """Scalar and vectorised evaluation of the efficiency/purity/FoM formulas"""

    @staticmethod
    def compute_arrays(
        n_sig: np.ndarray | float,
        n_bkg: np.ndarray | float,
        total_signal: np.ndarray | float,
    ) -> dict[str, np.ndarray]:
        """
        Element-wise metrics for arrays of counts.

        Args:
            n_sig: Signal events passing the cut
            n_bkg: Background events passing the cut
            total_signal: Total signal events (broadcast against n_sig)

        Returns:
            Dictionary with efficiency, purity, fom, eff_err, pur_err, fom_err arrays
        """
        n_sig = np.asarray(n_sig, dtype=np.float64)
        n_bkg = np.asarray(n_bkg, dtype=np.float64)
        total_signal = np.broadcast_to(np.asarray(total_signal, dtype=np.float64), n_sig.shape)
        n_selected = n_sig + n_bkg

        has_signal = total_signal > 0
        has_selected = n_selected > 0

        efficiency = np.divide(
            n_sig, total_signal, out=np.zeros_like(n_sig), where=has_signal
        )
        purity = np.divide(
            n_sig, n_selected, out=np.zeros_like(n_sig), where=has_selected
        )
        fom = efficiency * purity

        eff_var = np.divide(
            efficiency * (1.0 - efficiency),
            total_signal,
            out=np.zeros_like(n_sig),
            where=has_signal,
        )
        pur_var = np.divide(
            purity * (1.0 - purity),
            n_selected,
            out=np.zeros_like(n_sig),
            where=has_selected,
        )
        eff_err = np.sqrt(eff_var)
        pur_err = np.sqrt(pur_var)
        fom_err = np.sqrt((purity * eff_err) ** 2 + (efficiency * pur_err) ** 2)

        return {
            "efficiency": efficiency,
            "purity": purity,
            "fom": fom,
            "eff_err": eff_err,
            "pur_err": pur_err,
            "fom_err": fom_err,
        }

    def compute(
        self, n_sig: float, n_bkg: float, total_signal: float, cut: float = float("nan")
    ) -> MetricPoint:
        """Scalar form of compute_arrays()"""
        return compute_metrics(n_sig, n_bkg, total_signal, cut=cut)


def compute_metrics(
    n_sig: float, n_bkg: float, total_signal: float, cut: float = float("nan")
) -> MetricPoint:
    """
    Compute efficiency, purity, FoM and their errors from counts.

    Args:
        n_sig: Number of signal events passing the cut
        n_bkg: Number of background events passing the cut
        total_signal: Total number of signal events
        cut: Optional cut value to attach to the result

    Returns:
        MetricPoint with all six metric fields filled
    """
    efficiency = n_sig / total_signal if total_signal > 0 else 0.0
    n_selected = n_sig + n_bkg
    purity = n_sig / n_selected if n_selected > 0 else 0.0
    fom = efficiency * purity

    eff_err = np.sqrt(efficiency * (1 - efficiency) / total_signal) if total_signal > 0 else 0.0
    pur_err = np.sqrt(purity * (1 - purity) / n_selected) if n_selected > 0 else 0.0
    fom_err = np.sqrt((purity * eff_err) ** 2 + (efficiency * pur_err) ** 2)

    return MetricPoint(
        cut=float(cut),
        efficiency=float(efficiency),
        purity=float(purity),
        fom=float(fom),
        eff_err=float(eff_err),
        pur_err=float(pur_err),
        fom_err=float(fom_err),
    )
