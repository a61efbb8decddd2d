"""
Configuration loading and ROOT file access for the MVA evaluation

TOMLConfig reads the TOML files from the config directory; DataManager moves
events between ROOT files (uproot) and awkward arrays and splits them into
Signal/Background samples.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

import awkward as ak
import numpy as np
import pandas as pd
import tomli
import uproot

from .exceptions import (
    BranchMissingError,
    ConfigurationError,
    InputAccessError,
    StorageAccessError,
)
from .curve_smoother import INTERPOLATORS
from .threshold_sweep import BACKGROUND, SIGNAL, ScoreSample

SIGNAL_TREE = "Signal"
BACKGROUND_TREE = "Background"


class TOMLConfig:
    """
    Load and manage all TOML configuration files

    Structure:
    - data.toml: Input file, tree names and output locations
    - evaluation.toml: Sweep binning, interpolation, results table, energy bins, methods
    - filtering.toml: Interaction-type filtering of raw trees
    """

    def __init__(self, config_dir: str | Path = "./config"):
        self.config_dir = Path(config_dir)

        self.data = self._load_toml("data.toml")
        self.evaluation = self._load_toml("evaluation.toml")
        self.filtering = self._load_toml("filtering.toml")

    def _load_toml(self, filename: str) -> dict:
        """
        Load TOML configuration file with proper error handling

        Args:
            filename: Name of the TOML file to load

        Returns:
            dict: Parsed TOML configuration

        Raises:
            ConfigurationError: If file not found or parsing fails
        """
        config_path = self.config_dir / filename
        try:
            with open(config_path, "rb") as f:
                return tomli.load(f)
        except FileNotFoundError:
            raise ConfigurationError(
                f"Configuration file not found: {config_path}\n"
                f"Please ensure all config files are present in {self.config_dir}"
            )
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Error parsing TOML file {config_path}: {e}")

    def _section(self, config: dict, name: str, filename: str) -> dict:
        if name not in config:
            raise ConfigurationError(f"Missing [{name}] section in {filename}")
        return config[name]

    def get_input_settings(self) -> dict:
        """Input file and tree names, with defaults filled in"""
        section = self._section(self.data, "input", "data.toml")
        return {
            "file": section.get("file"),
            "signal_tree": section.get("signal_tree", SIGNAL_TREE),
            "background_tree": section.get("background_tree", BACKGROUND_TREE),
            "aux_variable": section.get("aux_variable", "TrueNuE"),
        }

    def get_output_settings(self) -> dict:
        section = self._section(self.data, "output", "data.toml")
        return {
            "base_dir": section.get("base_dir", "./output"),
            "results_dir": section.get("results_dir", "results"),
            "energy_bins_file": section.get("energy_bins_file", "energy_bins.csv"),
        }

    def get_sweep_settings(self) -> dict:
        """
        Histogram definition for the threshold sweep

        Returns:
            {"n_bins": int, "min_score": float, "max_score": float, "interpolation": str}

        Raises:
            ConfigurationError: If n_bins is not positive, the range is empty
                or the interpolation kind is unknown
        """
        sweep = self._section(self.evaluation, "sweep", "evaluation.toml")
        settings = {
            "n_bins": int(sweep.get("n_bins", 1000)),
            "min_score": float(sweep.get("min_score", -1.0)),
            "max_score": float(sweep.get("max_score", 1.0)),
            "interpolation": self.evaluation.get("optimization", {}).get("interpolation", "cubic"),
        }
        if settings["n_bins"] < 1:
            raise ConfigurationError(f"[sweep] n_bins must be positive, got {settings['n_bins']}")
        if settings["max_score"] <= settings["min_score"]:
            raise ConfigurationError(
                f"[sweep] max_score ({settings['max_score']}) must exceed "
                f"min_score ({settings['min_score']})"
            )
        if settings["interpolation"] not in INTERPOLATORS:
            raise ConfigurationError(
                f"[optimization] interpolation must be one of {sorted(INTERPOLATORS)}, "
                f"got '{settings['interpolation']}'"
            )
        return settings

    def get_energy_bin_edges(self) -> list[float]:
        """Energy bin edges from [energy_binning]"""
        section = self._section(self.evaluation, "energy_binning", "evaluation.toml")
        if "edges" not in section:
            raise ConfigurationError("Missing 'edges' in [energy_binning] of evaluation.toml")
        return [float(edge) for edge in section["edges"]]

    def get_method_names(self) -> list[str]:
        section = self._section(self.evaluation, "methods", "evaluation.toml")
        names = section.get("names", [])
        if not names:
            raise ConfigurationError("No MVA methods listed in [methods] of evaluation.toml")
        return list(names)

    def get_results_settings(self) -> dict:
        section = self.evaluation.get("results", {})
        return {
            "table": section.get("table", "Performance"),
            "key_column": section.get("key_column", "Method"),
        }

    def get_confusion_matrix_normalization(self) -> str:
        return self.evaluation.get("confusion_matrix", {}).get("normalization", "counts")

    def get_filter_settings(self) -> dict:
        section = self._section(self.filtering, "filter", "filtering.toml")
        return {
            "input_file": section.get("input_file"),
            "input_tree": section.get("input_tree", "cafTree"),
            "branches": list(section.get("branches", [])),
            "signal_type": section.get("signal_type", "NuE"),
            "include_cvn_max": bool(section.get("include_cvn_max", False)),
            "exclusion_branch": section.get("exclusion_branch", "CVNScoreNuE"),
            "exclusion_value": float(section.get("exclusion_value", -999.0)),
        }


def event_fields(events: Any) -> list[str]:
    """Column names of an awkward record array, DataFrame or mapping"""
    if isinstance(events, ak.Array):
        return list(events.fields)
    if isinstance(events, pd.DataFrame):
        return list(events.columns)
    if isinstance(events, Mapping):
        return list(events.keys())
    raise InputAccessError(f"Unsupported event container: {type(events).__name__}")


def column_values(events: Any, name: str, source: str | None = None) -> np.ndarray:
    """
    One column of an event container as a float64 numpy array.

    Raises:
        BranchMissingError: If the column does not exist
        InputAccessError: If events is not a supported container
    """
    if name not in event_fields(events):
        raise BranchMissingError(name, source)

    column = events[name]
    if isinstance(column, ak.Array):
        column = ak.to_numpy(column)
    return np.asarray(column, dtype=np.float64)


class DataManager:
    """Load and write Signal/Background ROOT trees"""

    def __init__(self, config: TOMLConfig | None = None):
        self.logger: logging.Logger = logging.getLogger("MvaEval.DataManager")
        self.config = config

        if config is not None:
            settings = config.get_input_settings()
            self.signal_tree = settings["signal_tree"]
            self.background_tree = settings["background_tree"]
        else:
            self.signal_tree = SIGNAL_TREE
            self.background_tree = BACKGROUND_TREE

    def load_tree(
        self,
        input_file: str | Path,
        tree_name: str,
        branches: list[str] | None = None,
    ) -> ak.Array:
        """
        Load a ROOT tree into an awkward array

        Args:
            input_file: Path to the ROOT file
            tree_name: Name of the TTree
            branches: Branches to read (all if None)

        Returns:
            Awkward record array, one field per branch

        Raises:
            InputAccessError: If the file or tree is unavailable
            BranchMissingError: If a requested branch does not exist
        """
        filepath = Path(input_file)
        if not filepath.exists():
            raise InputAccessError(f"Input file not found: {filepath}")

        try:
            with uproot.open(filepath) as file:
                if tree_name not in file:
                    raise InputAccessError(
                        f"Tree '{tree_name}' not found in {filepath}\n"
                        f"Available objects: {list(file.keys())}"
                    )
                tree = file[tree_name]

                if branches is not None:
                    available = set(tree.keys())
                    for branch in branches:
                        if branch not in available:
                            raise BranchMissingError(branch, str(filepath))

                events = tree.arrays(branches, library="ak")
        except (OSError, ValueError) as e:
            raise InputAccessError(f"Error reading ROOT file {filepath}: {e}")

        self.logger.debug(f"Loaded {tree_name} from {filepath.name}: {len(events)} events")
        return events

    def load_signal_background(
        self, input_file: str | Path, branches: list[str] | None = None
    ) -> tuple[ak.Array, ak.Array]:
        """Load the Signal and Background trees of one file"""
        signal = self.load_tree(input_file, self.signal_tree, branches)
        background = self.load_tree(input_file, self.background_tree, branches)
        self.logger.info(
            f"Loaded {Path(input_file).name}: {len(signal)} signal, {len(background)} background"
        )
        return signal, background

    def load_score_samples(
        self, input_file: str | Path, mva_branch: str
    ) -> tuple[ScoreSample, ScoreSample]:
        """Scores of one MVA method for both classes"""
        signal, background = self.load_signal_background(input_file, [mva_branch])
        return (
            ScoreSample.from_values(signal[mva_branch], SIGNAL),
            ScoreSample.from_values(background[mva_branch], BACKGROUND),
        )

    @staticmethod
    def split_by_filter(
        events: Any, signal_mask: Any, keep_mask: Any | None = None
    ) -> tuple[Any, Any]:
        """
        Split events into signal (mask true) and background (mask false)

        Args:
            events: Awkward record array or DataFrame
            signal_mask: Boolean per-event signal definition
            keep_mask: Optional boolean mask; events where it is false are
                       dropped from both outputs

        Returns:
            (signal, background) of the same container type as events
        """
        signal_mask = np.asarray(signal_mask, dtype=bool)
        keep = (
            np.ones_like(signal_mask) if keep_mask is None else np.asarray(keep_mask, dtype=bool)
        )
        if len(signal_mask) != len(events) or len(keep) != len(events):
            raise ValueError(
                f"Mask length does not match number of events ({len(events)})"
            )

        if isinstance(events, pd.DataFrame):
            return (
                events[keep & signal_mask].reset_index(drop=True),
                events[keep & ~signal_mask].reset_index(drop=True),
            )
        return events[keep & signal_mask], events[keep & ~signal_mask]

    def write_signal_background(
        self,
        output_file: str | Path,
        signal: Any,
        background: Any,
        branches: list[str] | None = None,
    ) -> Path:
        """
        Write Signal and Background trees to a new ROOT file

        Raises:
            StorageAccessError: If the file cannot be created
            BranchMissingError: If a branch is missing from either sample
        """
        output_path = Path(output_file)
        branches = branches if branches is not None else event_fields(signal)

        trees = {
            self.signal_tree: {b: _column_array(signal, b) for b in branches},
            self.background_tree: {b: _column_array(background, b) for b in branches},
        }

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with uproot.recreate(output_path) as file:
                for tree_name, columns in trees.items():
                    tree = file.mktree(
                        tree_name, {name: values.dtype for name, values in columns.items()}
                    )
                    if any(len(values) for values in columns.values()):
                        tree.extend(columns)
        except OSError as e:
            raise StorageAccessError(f"Cannot write ROOT file {output_path}: {e}")

        self.logger.info(
            f"Wrote {output_path.name}: {len(signal)} signal, {len(background)} background"
        )
        return output_path

    @staticmethod
    def score_ranges(signal: Any, background: Any, branch: str) -> dict[str, dict[str, float]]:
        """Count, minimum and maximum of one score branch per class"""
        return {
            SIGNAL: ScoreSample.from_values(column_values(signal, branch), SIGNAL).summary(),
            BACKGROUND: ScoreSample.from_values(
                column_values(background, branch), BACKGROUND
            ).summary(),
        }


def _column_array(events: Any, name: str) -> np.ndarray:
    """Column with its native dtype, for writing"""
    if name not in event_fields(events):
        raise BranchMissingError(name)
    column = events[name]
    if isinstance(column, ak.Array):
        return ak.to_numpy(column)
    return np.asarray(column)
