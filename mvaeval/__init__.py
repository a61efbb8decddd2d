"""Evaluation of MVA classifier cuts: optimal FoM cut, energy-binned performance and results logging"""

__version__ = "0.1.0"
