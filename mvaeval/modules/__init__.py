"""Evaluation building blocks"""

from .exceptions import (
    BranchMissingError,
    ConfigurationError,
    EmptyDistributionError,
    EvaluationError,
    InputAccessError,
    InvalidBinningError,
    StorageAccessError,
)
from .metrics_calculator import MetricPoint, MetricsCalculator, compute_metrics
from .optimal_cut_finder import OptimalCutFinder, OptimalCutResult
from .energy_binned_evaluator import EnergyBin, EnergyBinnedEvaluator, EnergyBinTableWriter
from .keyed_upsert_store import KeyedUpsertStore
