"""
Main differential expression coordinator
"""

import time
from pathlib import Path
from typing import Dict, Optional, Union

import pandas as pd

from ..config import Config
from ..utils import get_logger
from .methods import DESeq2Analyzer, FittedModel
from .results import (DifferentialResult, calculate_statistics,
                      classify_results, export_results)

logger = get_logger(__name__)


class DifferentialAnalyzer:
    """Fits the model, tests the configured comparison and summarizes it"""

    def __init__(self, config: Config):
        self.config = config
        self.diff_params = config.differential
        self.method = DESeq2Analyzer(config)
        self.fitted: Optional[FittedModel] = None

    def run_differential_analysis(
        self,
        counts: pd.DataFrame,
        metadata: pd.DataFrame,
        comparison: Optional[Dict[str, str]] = None,
    ) -> DifferentialResult:
        """
        Run DESeq2 for one treatment-vs-control comparison

        Args:
            counts: Genes x samples integer count matrix
            metadata: Sample metadata with the condition column
            comparison: Dict with ``name``, ``control`` and ``treatment``;
                defaults to the configured comparison

        Returns:
            DifferentialResult with the classified per-gene table
        """
        if comparison is None:
            comparison = self.diff_params["comparison"]

        fdr_threshold = self.diff_params.get("fdr_threshold", 0.05)
        logfc_threshold = self.diff_params.get("logfc_threshold", 1.0)

        logger.info(
            f"Starting differential expression analysis: {comparison['name']} "
            f"({comparison['treatment']} vs {comparison['control']})"
        )
        start_time = time.time()

        self.fitted = self.method.fit(counts, metadata, comparison)
        results_df = self.method.test(self.fitted, alpha=fdr_threshold)
        results_df = classify_results(results_df, fdr_threshold, logfc_threshold)

        stats = calculate_statistics(results_df, self.fitted.counts)

        result = DifferentialResult(
            comparison_name=comparison["name"],
            control=comparison["control"],
            treatment=comparison["treatment"],
            results_table=results_df,
            size_factors=self.fitted.size_factors,
            dispersions=self.fitted.dispersion_table(),
            fdr_threshold=fdr_threshold,
            logfc_threshold=logfc_threshold,
            execution_time=time.time() - start_time,
            **stats,
        )

        logger.info(
            f"{result.comparison_name}: {result.n_tested} genes tested, "
            f"{result.n_significant} significant "
            f"({result.n_up_regulated} up, {result.n_down_regulated} down), "
            f"{result.n_outliers} Cook's outliers, {result.n_filtered} filtered"
        )

        return result

    def save_results(
        self, result: DifferentialResult, output_dir: Union[str, Path]
    ) -> Dict[str, Path]:
        output_files = export_results(result, output_dir)
        result.output_files.update(output_files)
        return output_files
