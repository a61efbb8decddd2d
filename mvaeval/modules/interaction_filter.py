"""
Interaction-type filtering of raw event trees

Splits a flat event tree into Signal and Background trees according to the
true interaction type, optionally adding two CVN-derived selection columns:

- CVNMax_<type>: 1.0 if the highest of the three CVN scores belongs to <type>
- LinearCut_<type>: 1.0 if the two other CVN scores are below fixed thresholds

Events with the CVN sentinel value (CVNScoreNuE == -999) are dropped.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any

import awkward as ak
import numpy as np
import pandas as pd

from .data_handler import DataManager, column_values
from .exceptions import ConfigurationError

logger = logging.getLogger("MvaEval.InteractionFilter")

CVN_BRANCHES = ("CVNScoreNuE", "CVNScoreNuMu", "CVNScoreNC")
TRUTH_BRANCHES = ("TrueNuPdg", "IsCC")
EXCLUSION_BRANCH = "CVNScoreNuE"
EXCLUSION_VALUE = -999.0

# (score, threshold) pairs that must all be below threshold
LINEAR_CUTS = {
    "NuE": (("CVNScoreNuMu", 0.14), ("CVNScoreNC", 0.45)),
    "NuMu": (("CVNScoreNuE", 0.3), ("CVNScoreNC", 0.43)),
    "NC": (("CVNScoreNuE", 0.49), ("CVNScoreNuMu", 0.46)),
}


class InteractionType(Enum):
    NUE = "NuE"
    NUMU = "NuMu"
    NC = "NC"

    @classmethod
    def from_name(cls, name: str | InteractionType) -> InteractionType:
        """Look up a type by its value, case-insensitively"""
        if isinstance(name, cls):
            return name
        for member in cls:
            if member.value.lower() == str(name).lower():
                return member
        raise ConfigurationError(
            f"Unknown interaction type '{name}'. Available: {[m.value for m in cls]}"
        )

    def signal_mask(self, events: Any) -> np.ndarray:
        """
        True-interaction signal definition

        NuE: |TrueNuPdg| == 12 and charged current
        NuMu: |TrueNuPdg| == 14 and charged current
        NC: neutral current
        """
        is_cc = column_values(events, "IsCC") != 0
        if self is InteractionType.NC:
            return ~is_cc

        pdg = np.abs(column_values(events, "TrueNuPdg"))
        flavour = 12 if self is InteractionType.NUE else 14
        return (pdg == flavour) & is_cc


def predicted_class(cvn_nue: Any, cvn_numu: Any, cvn_nc: Any) -> np.ndarray:
    """
    Predicted interaction type per event from the three CVN scores.

    Starts from NuMu; NuE wins if strictly above the NuMu score, NC wins if
    strictly above the running maximum. Ties keep the earlier class.

    Returns:
        Object array of InteractionType
    """
    cvn_nue = np.asarray(cvn_nue, dtype=np.float64)
    cvn_numu = np.asarray(cvn_numu, dtype=np.float64)
    cvn_nc = np.asarray(cvn_nc, dtype=np.float64)

    predicted = np.full(cvn_numu.shape, InteractionType.NUMU, dtype=object)
    max_score = cvn_numu.copy()

    nue_wins = cvn_nue > max_score
    predicted[nue_wins] = InteractionType.NUE
    max_score = np.where(nue_wins, cvn_nue, max_score)

    nc_wins = cvn_nc > max_score
    predicted[nc_wins] = InteractionType.NC

    return predicted


def _with_column(events: Any, name: str, values: np.ndarray) -> Any:
    if isinstance(events, pd.DataFrame):
        events = events.copy()
        events[name] = values
        return events
    if isinstance(events, ak.Array):
        return ak.with_field(events, values, name)
    events = dict(events)
    events[name] = values
    return events


def add_cvn_max(events: Any, signal_type: str | InteractionType) -> Any:
    """Add CVNMax_<type>: 1.0 where the CVN prediction equals signal_type"""
    signal_type = InteractionType.from_name(signal_type)
    predicted = predicted_class(*(column_values(events, b) for b in CVN_BRANCHES))
    values = (predicted == signal_type).astype(np.float64)
    return _with_column(events, f"CVNMax_{signal_type.value}", values)


def add_linear_cut(events: Any, signal_type: str | InteractionType) -> Any:
    """Add LinearCut_<type>: 1.0 where both off-type CVN scores are below threshold"""
    signal_type = InteractionType.from_name(signal_type)
    passed = np.ones(len(events), dtype=bool)
    for branch, threshold in LINEAR_CUTS[signal_type.value]:
        passed &= column_values(events, branch) < threshold
    return _with_column(events, f"LinearCut_{signal_type.value}", passed.astype(np.float64))


def filter_input_data(
    input_file: str | Path,
    input_tree: str,
    output_file: str | Path,
    branches: list[str],
    signal_type: str | InteractionType,
    include_cvn_max: bool = False,
    data_manager: DataManager | None = None,
) -> tuple[int, int]:
    """
    Split a raw tree into Signal/Background trees by interaction type.

    Args:
        input_file: ROOT file with the raw event tree
        input_tree: Name of the raw tree
        output_file: ROOT file to create with Signal and Background trees
        branches: Branches copied to the output
        signal_type: Interaction type treated as signal
        include_cvn_max: Also compute and keep CVNMax_<type> and LinearCut_<type>
        data_manager: DataManager to use (default one created)

    Returns:
        (number of signal events, number of background events)

    Raises:
        InputAccessError: If the input file, tree or a branch is unavailable
        StorageAccessError: If the output file cannot be written
    """
    signal_type = InteractionType.from_name(signal_type)
    data_manager = data_manager or DataManager()

    needed = set(branches) | set(TRUTH_BRANCHES) | {EXCLUSION_BRANCH}
    if include_cvn_max:
        needed |= set(CVN_BRANCHES)
    events = data_manager.load_tree(input_file, input_tree, sorted(needed))

    output_branches = list(branches)
    if include_cvn_max:
        events = add_cvn_max(events, signal_type)
        events = add_linear_cut(events, signal_type)
        output_branches += [f"CVNMax_{signal_type.value}", f"LinearCut_{signal_type.value}"]

    keep = column_values(events, EXCLUSION_BRANCH) != EXCLUSION_VALUE
    signal, background = data_manager.split_by_filter(
        events, signal_type.signal_mask(events), keep
    )
    data_manager.write_signal_background(output_file, signal, background, output_branches)

    logger.info(
        f"Filtered {signal_type.value}: {len(signal)} signal, {len(background)} background "
        f"({int(np.count_nonzero(~keep))} events without CVN scores dropped) -> {output_file}"
    )
    return len(signal), len(background)
