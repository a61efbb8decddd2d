"""
Global pytest fixtures and configuration for the test suite.

Provides reusable fixtures for testing evaluation components without
duplicating setup code across test modules.
"""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator

import numpy as np
import pytest
import tomli_w

from .utils.mock_data_generator import create_signal_background_file


@pytest.fixture
def tmp_test_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test operations.

    Automatically cleaned up after test completion.

    Yields:
        Path to temporary directory
    """
    tmp_dir = Path(tempfile.mkdtemp(prefix="mvaeval_test_"))
    try:
        yield tmp_dir
    finally:
        if tmp_dir.exists():
            shutil.rmtree(tmp_dir)


@pytest.fixture
def tmp_output_dir(tmp_test_dir: Path) -> Path:
    """Temporary output directory"""
    output_dir = tmp_test_dir / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


@pytest.fixture
def simple_scores() -> Dict[str, np.ndarray]:
    """
    Four signal and four background scores with a known sweep result.

    With 4 bins over [0, 1], the cut at 0.75 keeps signal 0.9 and 0.8 and
    background 0.9: efficiency 0.5, purity 2/3.
    """
    return {
        "signal": np.array([0.9, 0.8, 0.7, 0.2]),
        "background": np.array([0.1, 0.2, 0.3, 0.9]),
    }


@pytest.fixture
def gaussian_scores() -> Dict[str, np.ndarray]:
    """Well separated signal (high) and background (low) score samples"""
    rng = np.random.default_rng(42)
    return {
        "signal": np.clip(rng.normal(0.5, 0.25, 5000), -0.999, 0.999),
        "background": np.clip(rng.normal(-0.4, 0.3, 5000), -0.999, 0.999),
    }


@pytest.fixture
def sample_evaluation_config() -> Dict[str, Any]:
    """Contents of a minimal evaluation.toml"""
    return {
        "sweep": {"n_bins": 200, "min_score": -1.0, "max_score": 1.0},
        "optimization": {"interpolation": "cubic"},
        "results": {"table": "Performance", "key_column": "Method"},
        "energy_binning": {"edges": [0.0, 1.0, 2.0, 4.0]},
        "methods": {"names": ["BDTG", "MLP"]},
        "confusion_matrix": {"normalization": "efficiency"},
    }


@pytest.fixture
def config_dir_fixture(
    tmp_test_dir: Path, sample_evaluation_config: Dict[str, Any]
) -> Path:
    """
    Create a temporary config directory with sample TOML files.

    Args:
        tmp_test_dir: Temporary test directory
        sample_evaluation_config: evaluation.toml contents

    Returns:
        Path to config directory
    """
    config_dir = tmp_test_dir / "config"
    config_dir.mkdir(parents=True, exist_ok=True)

    configs = {
        "data.toml": {
            "input": {
                "file": str(tmp_test_dir / "filtered.root"),
                "signal_tree": "Signal",
                "background_tree": "Background",
                "aux_variable": "TrueNuE",
            },
            "output": {
                "base_dir": str(tmp_test_dir / "output"),
                "results_dir": "results",
                "energy_bins_file": "energy_bins.csv",
            },
        },
        "evaluation.toml": sample_evaluation_config,
        "filtering.toml": {
            "filter": {
                "input_file": str(tmp_test_dir / "raw.root"),
                "input_tree": "cafTree",
                "branches": ["TrueNuE", "CVNScoreNuE", "CVNScoreNuMu", "CVNScoreNC"],
                "signal_type": "NuE",
                "include_cvn_max": True,
            }
        },
    }

    for filename, content in configs.items():
        with open(config_dir / filename, "wb") as f:
            tomli_w.dump(content, f)

    return config_dir


@pytest.fixture
def signal_background_file(tmp_test_dir: Path) -> Path:
    """ROOT file with Signal/Background trees holding BDTG, MLP and TrueNuE"""
    return create_signal_background_file(
        tmp_test_dir / "filtered.root", methods=["BDTG", "MLP"], n_events=2000
    )


def pytest_configure(config: pytest.Config) -> None:
    """
    Configure pytest with custom markers.

    Args:
        config: pytest configuration object
    """
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across components")
    config.addinivalue_line("markers", "validation: Error handling and input validation tests")
    config.addinivalue_line("markers", "config: Configuration loading tests")
    config.addinivalue_line("markers", "slow: Tests that take longer to run")
