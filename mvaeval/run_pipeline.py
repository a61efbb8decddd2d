#!/usr/bin/env python3
"""
MVA Cut Evaluation Pipeline

Orchestrates the evaluation of trained classifiers on Signal/Background
ROOT files:

  filter:   Split a raw event tree into Signal/Background trees by interaction type
  evaluate: For every method in config/evaluation.toml
              1. Find the FoM-optimal cut and log it to the results table
              2. Save the confusion matrix at that cut
            then evaluate all methods at their cuts in energy bins

Usage:
  mvaeval-pipeline filter [--config-dir config] [--input raw.root] [--output filtered.root]
  mvaeval-pipeline evaluate [--config-dir config] [--input filtered.root] [--methods BDT,MLP]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

import pandas as pd
from tqdm import tqdm

from .modules.confusion_matrix import confusion_matrix_from_file
from .modules.curve_smoother import CurveSmoother
from .modules.data_handler import DataManager, TOMLConfig
from .modules.energy_binned_evaluator import EnergyBinnedEvaluator
from .modules.exceptions import ConfigurationError, EvaluationError
from .modules.interaction_filter import filter_input_data
from .modules.keyed_upsert_store import KeyedUpsertStore
from .modules.optimal_cut_finder import OptimalCutFinder
from .utils.logging_config import get_tqdm_kwargs, setup_logging, suppress_warnings
from .utils.run_dirs import create_timestamped_dir


class PipelineManager:
    """
    Runs the filtering and evaluation steps from the TOML configuration.
    """

    def __init__(self, config_dir: str | Path = "./config", output_dir: str | Path | None = None):
        """
        Args:
            config_dir: Path to configuration directory
            output_dir: Base output directory (overrides [output] base_dir)
        """
        self.logger = logging.getLogger("MvaEval.Pipeline")
        self.config = TOMLConfig(config_dir)
        self.data_manager = DataManager(self.config)

        output = self.config.get_output_settings()
        self.output_dir = Path(output_dir or output["base_dir"])
        self.results_dir = self.output_dir / output["results_dir"]
        self.energy_bins_file = output["energy_bins_file"]

    def run_filter(
        self, input_file: str | Path | None = None, output_file: str | Path | None = None
    ) -> Path:
        """Split the raw tree into Signal/Background trees"""
        settings = self.config.get_filter_settings()
        input_file = input_file or settings["input_file"]
        if not input_file:
            raise ConfigurationError("No input file given for filtering ([filter] input_file)")
        output_file = Path(
            output_file or self.output_dir / f"filtered_{settings['signal_type']}.root"
        )

        print("\n" + "=" * 80)
        print(f"FILTERING: {settings['signal_type']} signal")
        print("=" * 80)

        n_signal, n_background = filter_input_data(
            input_file,
            settings["input_tree"],
            output_file,
            settings["branches"],
            settings["signal_type"],
            include_cvn_max=settings["include_cvn_max"],
            data_manager=self.data_manager,
        )
        print(f"✓ {n_signal} signal, {n_background} background -> {output_file}")
        return output_file

    def run_evaluation(
        self, input_file: str | Path | None = None, methods: list[str] | None = None
    ) -> dict[str, Any]:
        """
        Optimal cut, confusion matrix and energy-binned table for each method

        Returns:
            {"run_dir": Path, "cuts": DataFrame, "energy_bins": list[EnergyBin]}
        """
        input_file = input_file or self.config.get_input_settings()["file"]
        if not input_file:
            raise ConfigurationError("No input file given ([input] file in data.toml)")
        methods = methods or self.config.get_method_names()

        sweep = self.config.get_sweep_settings()
        results = self.config.get_results_settings()
        run_dir = create_timestamped_dir(self.output_dir)

        finder = OptimalCutFinder(
            smoother=CurveSmoother(sweep["interpolation"]),
            results_store=KeyedUpsertStore(self.results_dir),
            results_table=results["table"],
            key_column=results["key_column"],
        )
        normalization = self.config.get_confusion_matrix_normalization()

        print("\n" + "=" * 80)
        print(f"OPTIMAL CUTS: {len(methods)} method(s) from {Path(input_file).name}")
        print("=" * 80)

        optimal = []
        for method in tqdm(methods, **get_tqdm_kwargs("Methods", unit="method")):
            result = finder.find_optimal_cut_from_file(
                input_file,
                method,
                n_bins=sweep["n_bins"],
                min_score=sweep["min_score"],
                max_score=sweep["max_score"],
                data_manager=self.data_manager,
            )
            confusion_matrix_from_file(
                input_file,
                method,
                result.cut,
                normalization,
                output_dir=run_dir,
                data_manager=self.data_manager,
            )
            optimal.append(result)

        cuts_df = pd.DataFrame(
            [{"Method": r.method, **r.to_record()} for r in optimal],
            columns=["Method", "MaxCut", "Efficiency", "Purity", "FoM"],
        )

        print("\n" + "=" * 80)
        print("ENERGY-BINNED PERFORMANCE")
        print("=" * 80)

        aux_variable = self.config.get_input_settings()["aux_variable"]
        energy_bins = EnergyBinnedEvaluator().evaluate_binned_from_file(
            input_file,
            aux_variable,
            self.config.get_energy_bin_edges(),
            {r.method: r.cut for r in optimal},
            output_file=run_dir / self.energy_bins_file,
            data_manager=self.data_manager,
        )

        self._print_summary(cuts_df, run_dir)
        return {"run_dir": run_dir, "cuts": cuts_df, "energy_bins": energy_bins}

    def _print_summary(self, cuts_df: pd.DataFrame, run_dir: Path) -> None:
        print("\n" + "=" * 80)
        print("EVALUATION COMPLETE")
        print("=" * 80)
        print(cuts_df.to_string(index=False))
        print(f"\n  Results table: {self.results_dir}")
        print(f"  Run outputs:   {run_dir}")
        print("=" * 80 + "\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="MVA cut evaluation pipeline")
    parser.add_argument("--config-dir", default="config", help="Configuration directory")
    parser.add_argument("--output-dir", default=None, help="Override [output] base_dir")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    filter_parser = subparsers.add_parser("filter", help="Split raw tree by interaction type")
    filter_parser.add_argument("--input", default=None, help="Raw ROOT file")
    filter_parser.add_argument("--output", default=None, help="Output ROOT file")

    evaluate_parser = subparsers.add_parser("evaluate", help="Evaluate MVA methods")
    evaluate_parser.add_argument("--input", default=None, help="Signal/Background ROOT file")
    evaluate_parser.add_argument(
        "--methods", type=str, default=None, help="Comma-separated list of methods"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point with argument parsing"""
    args = build_parser().parse_args(argv)

    logger = setup_logging(args.verbose)
    # Can be overridden with MVAEVAL_WARNINGS=on
    suppress_warnings()

    try:
        pipeline = PipelineManager(config_dir=args.config_dir, output_dir=args.output_dir)
        if args.command == "filter":
            pipeline.run_filter(args.input, args.output)
        else:
            methods = args.methods.split(",") if args.methods else None
            pipeline.run_evaluation(args.input, methods)
    except EvaluationError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
