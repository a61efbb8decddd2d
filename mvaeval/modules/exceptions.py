#!/usr/bin/env python3
"""
Custom exceptions for the MVA cut evaluation pipeline

Provides a hierarchy of exceptions for better error handling and diagnostics.
All custom exceptions inherit from EvaluationError for easy catching.
"""

from __future__ import annotations


class EvaluationError(Exception):
    """
    Base exception for all evaluation pipeline errors

    All custom exceptions inherit from this class, allowing users to catch
    all evaluation-specific errors with a single except clause.
    """
    pass


class ConfigurationError(EvaluationError):
    """
    Raised when configuration is invalid or missing required fields

    Examples:
    - Missing required config file
    - Invalid parameter values
    - Missing required config sections
    """
    pass


class InputAccessError(EvaluationError):
    """
    Raised when a score source cannot be loaded

    Examples:
    - File not found
    - Corrupted ROOT file
    - Missing Signal/Background tree in ROOT file
    - Sample that is not a one-dimensional numeric sequence
    """
    pass


class BranchMissingError(InputAccessError):
    """
    Raised when a required branch (column) is not found in the input

    Examples:
    - MVA score branch missing from the Signal tree
    - Auxiliary variable (e.g. TrueNuE) missing
    - Method name typo in configuration
    """
    def __init__(self, branch_name: str, file_path: str | None = None):
        """
        Initialize BranchMissingError

        Args:
            branch_name: Name of the missing branch
            file_path: Optional path to the file being read
        """
        self.branch_name = branch_name
        self.file_path = file_path

        message = f"Required branch '{branch_name}' not found"
        if file_path:
            message += f" in file: {file_path}"

        super().__init__(message)


class EmptyDistributionError(EvaluationError):
    """
    Raised when a zero-count denominator makes a metric undefined

    Examples:
    - Signal histogram with no entries inside the score range
    - Empty background sample for a confusion matrix
    """
    pass


class InvalidBinningError(EvaluationError):
    """
    Raised when a binning configuration is malformed

    Examples:
    - Fewer than two energy bin edges
    - Bin edges not strictly increasing
    - Non-positive number of histogram bins
    """
    pass


class StorageAccessError(EvaluationError):
    """
    Raised when a results sink cannot be written

    Examples:
    - Results directory not writable
    - Existing results table unreadable or missing its key column
    - Output ROOT file cannot be created
    """
    pass
