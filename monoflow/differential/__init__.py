"""
Differential expression module for MonoFlow

This module fits a negative binomial GLM per gene with PyDESeq2, tests the
condition effect with Wald tests and summarizes the results.
"""

from .analyzer import DifferentialAnalyzer
from .methods import DESeq2Analyzer, FittedModel, check_replicates
from .normalization import median_of_ratios, normalized_counts
from .results import (DifferentialResult, calculate_statistics,
                      classify_results, export_results)

__all__ = [
    "DifferentialAnalyzer",
    "DifferentialResult",
    "DESeq2Analyzer",
    "FittedModel",
    "check_replicates",
    "median_of_ratios",
    "normalized_counts",
    "classify_results",
    "calculate_statistics",
    "export_results",
]
