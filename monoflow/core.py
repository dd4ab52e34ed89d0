"""
Core MonoFlow analysis orchestrator
"""

import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd

from .config import Config, load_config, validate_config
from .counts import (ANNOTATION_COLUMNS, build_sample_metadata, library_sizes,
                     load_count_matrix, write_count_matrix)
from .counts.loader import SAMPLE_PATTERNS, SAMPLE_SUFFIXES
from .differential import DifferentialAnalyzer, DifferentialResult
from .exceptions import AnnotationError
from .exploration import ExploratoryProjection, ProjectionResult
from .genomics import SymbolLookup
from .utils import get_logger, setup_logging
from .visualization import (create_correlation_heatmap, create_ma_plot,
                            create_pca_plot, create_volcano_plot)

logger = get_logger(__name__)

PIPELINE_STEPS = [
    "load",
    "differential_analysis",
    "exploration",
    "annotation",
    "visualization",
]


class MonoFlowAnalysis:
    """
    Orchestrates the count-matrix to annotated DE results workflow

    Loader -> model fit -> {exploratory projection, annotation} -> plots.
    Each step consumes the previous step's in-memory output.
    """

    def __init__(
        self,
        config: Union[str, Path, Config, Dict[str, Any]],
        log_level: str = "INFO",
        log_file: Optional[Union[str, Path]] = None,
        configure_logging: bool = True,
    ):
        """
        Initialize MonoFlow analysis

        Args:
            config: Configuration file path, Config object, or config dict
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional log file path
            configure_logging: Install MonoFlow's logging handlers
        """
        if configure_logging:
            setup_logging(level=log_level, log_file=log_file)

        if isinstance(config, (str, Path)):
            self.config = load_config(config)
        elif isinstance(config, dict):
            self.config = Config(**config)
        elif isinstance(config, Config):
            self.config = config
        else:
            raise ValueError(
                "Invalid config type. Expected str, Path, dict, or Config object"
            )

        issues = validate_config(self.config)
        if issues:
            logger.warning("Configuration issues found:")
            for issue in issues:
                logger.warning(f"  - {issue}")

        self.output_dir = Path(self.config.output_dir or "monoflow_results")
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.differential_analyzer = DifferentialAnalyzer(self.config)
        self.projection = ExploratoryProjection(self.config)
        self.symbol_lookup = SymbolLookup(self.config)

        self.counts: Optional[pd.DataFrame] = None
        self.metadata: Optional[pd.DataFrame] = None
        self.differential_result: Optional[DifferentialResult] = None
        self.projection_result: Optional[ProjectionResult] = None
        self.results: Dict[str, Any] = {}
        self.execution_times: Dict[str, float] = {}

    def run_full_pipeline(
        self,
        counts_file: Optional[Union[str, Path]] = None,
        steps: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Run the pipeline steps in order

        Args:
            counts_file: featureCounts table, defaults to ``config.counts_file``
            steps: Subset of :data:`PIPELINE_STEPS` to run

        Returns:
            Dictionary of per-step outputs
        """
        if steps is None:
            steps = list(PIPELINE_STEPS)

        unknown = [step for step in steps if step not in PIPELINE_STEPS]
        if unknown:
            raise ValueError(f"Unknown pipeline steps: {unknown}")

        logger.info("=" * 60)
        logger.info(f"Starting MonoFlow pipeline: {self.config.project_name}")
        logger.info("=" * 60)

        start_time = time.time()

        for step in PIPELINE_STEPS:
            if step not in steps:
                continue

            step_start = time.time()
            logger.info(f"{'=' * 20} STEP: {step.upper()} {'=' * 20}")

            try:
                if step == "load":
                    self.results["load"] = self.run_load(counts_file)
                elif step == "differential_analysis":
                    self.results["differential_analysis"] = self.run_differential_analysis()
                elif step == "exploration":
                    self.results["exploration"] = self.run_exploration()
                elif step == "annotation":
                    self.results["annotation"] = self.run_annotation()
                elif step == "visualization":
                    self.results["visualization"] = self.run_visualization()
            except Exception as e:
                logger.error(f"Step {step} failed: {e}", exc_info=True)
                raise

            step_time = time.time() - step_start
            self.execution_times[step] = step_time
            logger.info(f"Step {step} completed in {step_time:.2f} seconds")

        total_time = time.time() - start_time
        self.execution_times["total"] = total_time

        self._create_pipeline_summary()

        logger.info("=" * 60)
        logger.info(f"MonoFlow pipeline completed in {total_time:.2f} seconds")
        logger.info("=" * 60)

        return self.results

    def run_load(self, counts_file: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
        """Load the count matrix and derive sample conditions"""

        counts_file = counts_file or self.config.counts_file
        if not counts_file:
            raise ValueError("No counts file given and config.counts_file is unset")

        params = self.config.counts
        self.counts = load_count_matrix(
            counts_file,
            comment=params.get("comment", "#"),
            annotation_columns=params.get("annotation_columns", ANNOTATION_COLUMNS),
            suffixes=params.get("sample_suffixes", SAMPLE_SUFFIXES),
            patterns=params.get("sample_patterns", SAMPLE_PATTERNS),
        )
        self.metadata = build_sample_metadata(
            self.counts.columns, self.config.condition_config
        )

        counts_dir = self.output_dir / "counts"
        files = {
            "counts": write_count_matrix(self.counts, counts_dir / "count_matrix.tsv"),
            "metadata": counts_dir / "sample_metadata.tsv",
        }
        self.metadata.join(library_sizes(self.counts)).to_csv(
            files["metadata"], sep="\t"
        )

        return {"counts": self.counts, "metadata": self.metadata, "files": files}

    def _require_counts(self) -> None:
        if self.counts is None or self.metadata is None:
            raise RuntimeError("The load step must run before this step")

    def run_differential_analysis(self) -> DifferentialResult:
        """Fit the model and test the configured comparison"""

        self._require_counts()

        result = self.differential_analyzer.run_differential_analysis(
            self.counts, self.metadata
        )
        self.differential_analyzer.save_results(result, self.output_dir / "differential")
        self.differential_result = result
        return result

    def run_exploration(self) -> ProjectionResult:
        """Variance-stabilize, correlate and project samples"""

        self._require_counts()

        self.projection_result = self.projection.run(self.counts, self.metadata)
        self.projection.save(self.projection_result, self.output_dir / "exploration")
        return self.projection_result

    def run_annotation(self) -> pd.DataFrame:
        """Join gene symbols onto the differential results"""

        if self.differential_result is None:
            raise RuntimeError("Differential analysis must run before annotation")

        table = self.differential_result.results_table

        if not self.config.annotation.get("enabled", True):
            logger.info("Annotation disabled; gene symbols left empty")
            annotated = table.assign(gene_symbol=np.nan)
        else:
            try:
                annotated = self.symbol_lookup.annotate(table)
            except AnnotationError as e:
                logger.warning(f"Gene symbol lookup unavailable, continuing without: {e}")
                annotated = table.assign(gene_symbol=np.nan)

        self.differential_result.results_table = annotated
        self.differential_analyzer.save_results(
            self.differential_result, self.output_dir / "differential"
        )
        return annotated

    def run_visualization(self) -> Dict[str, Path]:
        """Render heatmap, PCA, MA and volcano plots"""

        viz = self.config.visualization
        plot_dir = self.output_dir / "plots"
        dpi = viz.get("dpi", 300)
        formats = viz.get("save_formats", ["png"])
        condition_column = self.config.condition_config.column

        plots = {}

        if self.projection_result is not None:
            plots["correlation_heatmap"] = create_correlation_heatmap(
                self.projection_result.correlation,
                self.metadata,
                condition_column=condition_column,
                output_file=plot_dir / "correlation_heatmap.png",
                dpi=dpi,
                formats=formats,
            )
            plots["pca"] = create_pca_plot(
                self.projection_result.pca,
                condition_column=condition_column,
                output_file=plot_dir / "pca.png",
                dpi=dpi,
                formats=formats,
            )

        if self.differential_result is not None:
            table = self.differential_result.results_table
            name = self.differential_result.comparison_name
            plots["ma_plot"] = create_ma_plot(
                table,
                p_cutoff=viz.get("p_cutoff", 0.05),
                ylim=viz.get("ma_ylim"),
                title=f"{name}: MA plot",
                output_file=plot_dir / "ma_plot.png",
                dpi=dpi,
                formats=formats,
            )
            plots["volcano_plot"] = create_volcano_plot(
                table,
                p_cutoff=viz.get("p_cutoff", 0.05),
                lfc_cutoff=viz.get("lfc_cutoff", 1.0),
                xlim=viz.get("volcano_xlim"),
                ylim=viz.get("volcano_ylim"),
                label_top=viz.get("label_top_genes", 10),
                title=f"{name}: volcano plot",
                output_file=plot_dir / "volcano_plot.png",
                dpi=dpi,
                formats=formats,
            )

        if not plots:
            logger.warning("Nothing to plot; run exploration or differential analysis first")

        return plots

    def _create_pipeline_summary(self) -> pd.DataFrame:
        """Write one row per executed step with timing and key counts"""

        rows = []
        for step, seconds in self.execution_times.items():
            if step == "total":
                continue
            row = {"step": step, "execution_time_s": round(seconds, 2)}

            if step == "load" and self.counts is not None:
                row["detail"] = f"{self.counts.shape[0]} genes x {self.counts.shape[1]} samples"
            elif step == "differential_analysis" and self.differential_result is not None:
                r = self.differential_result
                row["detail"] = (
                    f"{r.n_tested} tested, {r.n_significant} significant "
                    f"({r.n_up_regulated} up, {r.n_down_regulated} down)"
                )
            elif step == "exploration" and self.projection_result is not None:
                row["detail"] = ", ".join(
                    f"{pc} {pct:.1f}%"
                    for pc, pct in self.projection_result.pca.percent_variance.items()
                )
            elif step == "annotation" and self.differential_result is not None:
                symbols = self.differential_result.results_table["gene_symbol"]
                row["detail"] = f"{int(symbols.notna().sum())} genes with symbols"
            elif step == "visualization":
                row["detail"] = f"{len(self.results.get('visualization', {}))} plots"

            rows.append(row)

        summary = pd.DataFrame(rows, columns=["step", "execution_time_s", "detail"])
        summary_file = self.output_dir / "monoflow_summary.tsv"
        summary.to_csv(summary_file, sep="\t", index=False)

        logger.info(f"Pipeline summary saved to {summary_file}")
        return summary

    def get_execution_times(self) -> Dict[str, float]:
        return self.execution_times.copy()
