"""
2×2 confusion matrix of a score cut

Rows are the true class, columns the predicted class (score > cut → Signal).
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from .data_handler import DataManager
from .exceptions import ConfigurationError, EmptyDistributionError, StorageAccessError
from .threshold_sweep import BACKGROUND, SIGNAL, ScoreSample

logger = logging.getLogger("MvaEval.ConfusionMatrix")

CLASSES = ["Signal", "Background"]


class ConfusionMatrixType(Enum):
    COUNTS = "counts"
    EFFICIENCY = "efficiency"  # row-normalised by true class
    PURITY = "purity"  # column-normalised by predicted class

    @classmethod
    def from_name(cls, name: str | ConfusionMatrixType) -> ConfusionMatrixType:
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown confusion matrix type '{name}'. Available: {[m.value for m in cls]}"
            )

    @property
    def file_suffix(self) -> str:
        return {"counts": "_counts", "efficiency": "_eff", "purity": "_pur"}[self.value]


def _safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def compute_confusion_matrix(
    signal: Any,
    background: Any,
    cut: float,
    matrix_type: str | ConfusionMatrixType = ConfusionMatrixType.COUNTS,
) -> pd.DataFrame:
    """
    Confusion matrix of the selection score > cut

    Args:
        signal: Signal scores
        background: Background scores
        cut: Score threshold
        matrix_type: COUNTS, EFFICIENCY or PURITY

    Returns:
        DataFrame indexed by true class with predicted-class columns

    Raises:
        EmptyDistributionError: If either sample is empty
    """
    matrix_type = ConfusionMatrixType.from_name(matrix_type)
    signal = ScoreSample.from_values(signal, SIGNAL)
    background = ScoreSample.from_values(background, BACKGROUND)

    if signal.is_empty or background.is_empty:
        raise EmptyDistributionError(
            "Signal or Background sample is empty. Cannot build confusion matrix."
        )

    total_signal = float(len(signal))
    total_background = float(len(background))
    tp = float(np.count_nonzero(signal.scores > cut))
    fp = float(np.count_nonzero(background.scores > cut))
    fn = total_signal - tp
    tn = total_background - fp
    logger.debug(f"TP: {tp:.0f} | FN: {fn:.0f} | FP: {fp:.0f} | TN: {tn:.0f}")

    if matrix_type is ConfusionMatrixType.EFFICIENCY:
        tp, fn = _safe_ratio(tp, total_signal), _safe_ratio(fn, total_signal)
        fp, tn = _safe_ratio(fp, total_background), _safe_ratio(tn, total_background)
    elif matrix_type is ConfusionMatrixType.PURITY:
        predicted_signal = tp + fp
        predicted_background = tn + fn
        tp, fp = _safe_ratio(tp, predicted_signal), _safe_ratio(fp, predicted_signal)
        fn, tn = _safe_ratio(fn, predicted_background), _safe_ratio(tn, predicted_background)

    return pd.DataFrame(
        [[tp, fn], [fp, tn]],
        index=pd.Index(CLASSES, name="True"),
        columns=pd.Index(CLASSES, name="Predicted"),
    )


def confusion_matrix_from_file(
    input_file: str | Path,
    mva_branch: str,
    cut: float,
    matrix_type: str | ConfusionMatrixType = ConfusionMatrixType.COUNTS,
    output_dir: str | Path | None = None,
    data_manager: DataManager | None = None,
) -> pd.DataFrame:
    """
    Confusion matrix for one score branch of a Signal/Background file

    If output_dir is given the matrix is saved as
    <output_dir>/<mva_branch><suffix>_cmat.csv.
    """
    matrix_type = ConfusionMatrixType.from_name(matrix_type)
    data_manager = data_manager or DataManager()
    signal, background = data_manager.load_score_samples(input_file, mva_branch)
    matrix = compute_confusion_matrix(signal, background, cut, matrix_type)

    if output_dir is not None:
        output_path = Path(output_dir) / f"{mva_branch}{matrix_type.file_suffix}_cmat.csv"
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            matrix.to_csv(output_path)
        except OSError as e:
            raise StorageAccessError(f"Cannot write confusion matrix {output_path}: {e}")
        logger.info(f"Confusion matrix saved to: {output_path}")

    return matrix
