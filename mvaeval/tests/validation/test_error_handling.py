"""
Error handling validation tests.

Tests graceful failure:
- Missing files, trees and branches
- Invalid configuration values
- Empty or malformed score samples
- Exit codes of the command-line entry point
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
import tomli_w

from mvaeval.modules.data_handler import TOMLConfig
from mvaeval.modules.energy_binned_evaluator import EnergyBinnedEvaluator
from mvaeval.modules.exceptions import (
    BranchMissingError,
    ConfigurationError,
    EmptyDistributionError,
    EvaluationError,
    InputAccessError,
    InvalidBinningError,
)
from mvaeval.modules.optimal_cut_finder import OptimalCutFinder
from mvaeval.run_pipeline import PipelineManager, main


def _rewrite_evaluation(config_dir: Path, config: dict) -> None:
    with open(config_dir / "evaluation.toml", "wb") as f:
        tomli_w.dump(config, f)


@pytest.mark.validation
class TestInputErrors:
    """Test errors raised for unusable inputs."""

    def test_missing_input_file(self, tmp_test_dir: Path) -> None:
        with pytest.raises(InputAccessError, match="not found"):
            OptimalCutFinder().find_optimal_cut_from_file(tmp_test_dir / "absent.root", "BDTG")

    def test_unknown_method_branch(self, signal_background_file: Path) -> None:
        with pytest.raises(BranchMissingError) as exc_info:
            OptimalCutFinder().find_optimal_cut_from_file(signal_background_file, "Fisher")

        assert exc_info.value.branch_name == "Fisher"

    def test_empty_signal(self) -> None:
        with pytest.raises(EmptyDistributionError):
            OptimalCutFinder().find_optimal_cut([], [0.1, 0.2], n_bins=10)

    def test_signal_outside_range(self) -> None:
        with pytest.raises(EmptyDistributionError):
            OptimalCutFinder().find_optimal_cut([2.0, 3.0], [0.1], n_bins=10)

    def test_two_dimensional_sample(self) -> None:
        with pytest.raises(InputAccessError, match="one-dimensional"):
            OptimalCutFinder().find_optimal_cut(np.zeros((2, 2)), [0.1], n_bins=10)

    def test_invalid_sweep_binning(self) -> None:
        with pytest.raises(InvalidBinningError):
            OptimalCutFinder().find_optimal_cut([0.5], [0.1], n_bins=0)

    def test_missing_aux_variable(self, signal_background_file: Path) -> None:
        with pytest.raises(BranchMissingError, match="RecoNuE"):
            EnergyBinnedEvaluator().evaluate_binned_from_file(
                signal_background_file, "RecoNuE", [0.0, 1.0], {"BDTG": 0.0}
            )


@pytest.mark.validation
@pytest.mark.config
class TestConfigurationErrors:
    """Test errors raised for invalid configuration."""

    def test_missing_config_directory(self, tmp_test_dir: Path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            TOMLConfig(tmp_test_dir / "nonexistent_config")

        assert "not found" in str(exc_info.value).lower()

    @pytest.mark.parametrize(
        "sweep,optimization",
        [
            ({"n_bins": 0}, {}),
            ({"min_score": 0.5, "max_score": 0.5}, {}),
            ({}, {"interpolation": "quadratic"}),
        ],
    )
    def test_invalid_sweep(
        self, config_dir_fixture: Path, sample_evaluation_config: dict, sweep, optimization
    ) -> None:
        config = dict(sample_evaluation_config)
        config["sweep"] = {**config["sweep"], **sweep}
        config["optimization"] = {**config["optimization"], **optimization}
        _rewrite_evaluation(config_dir_fixture, config)

        with pytest.raises(ConfigurationError):
            TOMLConfig(config_dir_fixture).get_sweep_settings()

    def test_no_methods(self, config_dir_fixture: Path, sample_evaluation_config: dict) -> None:
        _rewrite_evaluation(config_dir_fixture, {**sample_evaluation_config, "methods": {"names": []}})

        with pytest.raises(ConfigurationError, match="No MVA methods"):
            TOMLConfig(config_dir_fixture).get_method_names()

    def test_unsorted_energy_edges(
        self,
        config_dir_fixture: Path,
        sample_evaluation_config: dict,
        signal_background_file: Path,
    ) -> None:
        _rewrite_evaluation(
            config_dir_fixture,
            {**sample_evaluation_config, "energy_binning": {"edges": [0.0, 2.0, 1.0]}},
        )

        with pytest.raises(InvalidBinningError):
            PipelineManager(config_dir_fixture).run_evaluation()


@pytest.mark.validation
class TestCommandLineFailures:
    """Test that pipeline errors become a non-zero exit code."""

    def test_missing_config(self, tmp_test_dir: Path) -> None:
        assert main(["--config-dir", str(tmp_test_dir / "none"), "evaluate"]) == 1

    def test_missing_input(self, config_dir_fixture: Path) -> None:
        # filtered.root is never created here
        assert main(["--config-dir", str(config_dir_fixture), "evaluate"]) == 1

    def test_unknown_method(self, config_dir_fixture: Path, signal_background_file: Path) -> None:
        args = ["--config-dir", str(config_dir_fixture), "evaluate", "--methods", "BDTG,Fisher"]

        assert main(args) == 1

    def test_missing_raw_file(self, config_dir_fixture: Path) -> None:
        assert main(["--config-dir", str(config_dir_fixture), "filter"]) == 1

    def test_all_errors_share_base(self) -> None:
        for exc in [ConfigurationError("x"), BranchMissingError("b"), InvalidBinningError("y")]:
            assert isinstance(exc, EvaluationError)
