"""
Apply trained classifiers to events

A scorer is any callable mapping the input variables of one event
({name: value}) to a score. Scorers can be registered directly or loaded from
a pickle file. Input values are passed in an immutable EvaluationContext, so
evaluating never depends on state shared with the evaluator.
"""

from __future__ import annotations

import logging
import pickle
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Mapping

import numpy as np
import uproot
from tqdm import tqdm

from ..utils.logging_config import get_tqdm_kwargs
from .data_handler import DataManager, column_values, event_fields
from .exceptions import ConfigurationError, InputAccessError, StorageAccessError

Scorer = Callable[[Mapping[str, float]], float]


@dataclass(frozen=True)
class EvaluationContext:
    """
    Values of the registered inputs for one event.

    Attributes:
        variables: Classifier input variables (passed to the scorer)
        spectators: Carried-along values the scorer does not see
    """

    variables: Mapping[str, float] = field(default_factory=dict)
    spectators: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))
        object.__setattr__(self, "spectators", MappingProxyType(dict(self.spectators)))


class ScoreEvaluator:
    """
    Registry of input variables and booked scoring methods.

    Attributes:
        variables: Registered input variable names, in registration order
        spectators: Registered spectator names, in registration order
    """

    def __init__(self) -> None:
        self.logger: logging.Logger = logging.getLogger("MvaEval.ScoreEvaluator")
        self.variables: list[str] = []
        self.spectators: list[str] = []
        self._registered: set[str] = set()
        self._methods: dict[str, Scorer] = {}

    def _register(self, name: str, target: list[str], kind: str) -> bool:
        if name in self._registered:
            self.logger.warning(f"{kind} '{name}' is already registered")
            return False
        target.append(name)
        self._registered.add(name)
        return True

    def add_variable(self, name: str) -> bool:
        """Register an input variable; duplicates are ignored with a warning"""
        return self._register(name, self.variables, "Variable")

    def add_spectator(self, name: str) -> bool:
        """Register a spectator; duplicates are ignored with a warning"""
        return self._register(name, self.spectators, "Spectator")

    @property
    def methods(self) -> list[str]:
        return list(self._methods)

    def book_method(self, name: str, scorer: Scorer) -> None:
        if not callable(scorer):
            raise ConfigurationError(f"Scorer for method '{name}' is not callable")
        if name in self._methods:
            self.logger.warning(f"Method '{name}' re-booked; previous scorer replaced")
        self._methods[name] = scorer
        self.logger.debug(f"Booked method '{name}'")

    def book_method_from_file(self, name: str, path: str | Path) -> None:
        """
        Book a pickled scorer.

        Only load files you trust: unpickling can execute arbitrary code.

        Raises:
            InputAccessError: If the file is missing or cannot be unpickled
        """
        path = Path(path)
        if not path.exists():
            raise InputAccessError(f"Model file not found: {path}")
        try:
            with open(path, "rb") as f:
                scorer = pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError, AttributeError) as e:
            raise InputAccessError(f"Cannot load model file {path}: {e}")
        self.book_method(name, scorer)

    def make_context(self, values: Mapping[str, float]) -> EvaluationContext:
        """
        Build a context from a name → value mapping.

        Registered names missing from values default to 0.0; unregistered
        names are ignored with a warning.
        """
        unknown = set(values) - self._registered
        if unknown:
            self.logger.warning(f"Ignoring unregistered inputs: {sorted(unknown)}")
        return EvaluationContext(
            variables={n: float(values.get(n, 0.0)) for n in self.variables},
            spectators={n: float(values.get(n, 0.0)) for n in self.spectators},
        )

    def evaluate(self, method: str, context: EvaluationContext) -> float:
        """
        Score of one event.

        Raises:
            ConfigurationError: If the method has not been booked
        """
        if method not in self._methods:
            raise ConfigurationError(
                f"Method '{method}' is not booked. Booked methods: {self.methods}"
            )
        return float(self._methods[method](context.variables))

    def evaluate_events(self, method: str, events: Any) -> np.ndarray:
        """
        Scores for every event of a record array, DataFrame or mapping.

        Raises:
            BranchMissingError: If a registered variable is missing
        """
        columns = {name: column_values(events, name) for name in self.variables}
        n_events = len(next(iter(columns.values()))) if columns else len(events)

        scores = np.empty(n_events, dtype=np.float64)
        for i in tqdm(range(n_events), **get_tqdm_kwargs(f"Scoring {method}", unit="evt")):
            context = EvaluationContext(
                variables={name: float(values[i]) for name, values in columns.items()}
            )
            scores[i] = self.evaluate(method, context)
        return scores

    def apply_to_tree(
        self,
        input_file: str | Path,
        tree_name: str,
        method: str,
        output_file: str | Path,
        cut: float,
        data_manager: DataManager | None = None,
    ) -> np.ndarray:
        """
        Add a <method>_output column (1.0 if score > cut, else 0.0) to a tree.

        The input tree is copied to output_file with the extra column.

        Returns:
            The pass/fail column
        """
        data_manager = data_manager or DataManager()
        events = data_manager.load_tree(input_file, tree_name)
        passed = (self.evaluate_events(method, events) > cut).astype(np.float64)

        columns = {name: np.asarray(events[name]) for name in event_fields(events)}
        columns[f"{method}_output"] = passed

        output_path = Path(output_file)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with uproot.recreate(output_path) as file:
                tree = file.mktree(tree_name, {n: v.dtype for n, v in columns.items()})
                if len(passed):
                    tree.extend(columns)
        except OSError as e:
            raise StorageAccessError(f"Cannot write ROOT file {output_path}: {e}")

        self.logger.info(
            f"Applied method '{method}' to {tree_name} and saved results to: {output_path}"
        )
        return passed
