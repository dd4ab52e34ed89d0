"""
Negative binomial GLM fitting and Wald testing via PyDESeq2
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from pydeseq2.dds import DeseqDataSet
from pydeseq2.default_inference import DefaultInference
from pydeseq2.ds import DeseqStats

from ..config import Config
from ..exceptions import MalformedInputError, ModelConvergenceError
from ..utils import get_logger, log_execution_time

logger = get_logger(__name__)

# PyDESeq2 results_df -> MonoFlow result columns
RESULT_COLUMNS = {
    "baseMean": "base_mean",
    "log2FoldChange": "log2_fold_change",
    "lfcSE": "standard_error",
    "stat": "test_statistic",
    "pvalue": "p_value",
    "padj": "adjusted_p_value",
}


@dataclass
class FittedModel:
    """A fitted DESeq2 model and the per-sample / per-gene estimates it cached"""

    dds: DeseqDataSet
    counts: pd.DataFrame
    metadata: pd.DataFrame
    condition_column: str
    control: str
    treatment: str
    size_factors: pd.Series
    genewise_dispersions: pd.Series
    trend_dispersions: pd.Series
    dispersions: pd.Series

    @property
    def n_genes(self) -> int:
        return self.counts.shape[0]

    @property
    def n_samples(self) -> int:
        return self.counts.shape[1]

    def dispersion_table(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "genewise_dispersion": self.genewise_dispersions,
                "trend_dispersion": self.trend_dispersions,
                "dispersion": self.dispersions,
            }
        )


def check_replicates(
    metadata: pd.DataFrame,
    condition_column: str,
    levels: Sequence[str],
    min_replicates: int = 2,
) -> pd.Series:
    """
    Ensure every compared condition has enough replicates to estimate dispersion

    Args:
        metadata: Sample metadata
        condition_column: Column holding condition labels
        levels: Condition levels taking part in the comparison
        min_replicates: Minimum samples per level

    Returns:
        Sample count per level

    Raises:
        ModelConvergenceError: A level has fewer than ``min_replicates`` samples
    """
    if condition_column not in metadata.columns:
        raise MalformedInputError(f"Metadata has no '{condition_column}' column")

    counts = metadata[condition_column].value_counts().reindex(levels, fill_value=0)

    short = counts[counts < min_replicates]
    if not short.empty:
        detail = ", ".join(f"{level}={n}" for level, n in short.items())
        raise ModelConvergenceError(
            f"Dispersion cannot be estimated with fewer than {min_replicates} "
            f"replicates per condition ({detail})"
        )

    return counts


def _sample_vector(dds: DeseqDataSet, key: str) -> np.ndarray:
    # size factors live in obs on recent PyDESeq2 releases and in obsm on older ones
    if key in dds.obs.columns:
        return dds.obs[key].to_numpy()
    return np.asarray(dds.obsm[key])


def _gene_vector(dds: DeseqDataSet, key: str) -> np.ndarray:
    # per-gene estimates live in var from PyDESeq2 0.5.2 and in varm before
    if key in dds.var.columns:
        return dds.var[key].to_numpy()
    return np.asarray(dds.varm[key])


class DESeq2Analyzer:
    """Median-of-ratios normalization, dispersion shrinkage and Wald tests"""

    def __init__(self, config: Config):
        self.config = config
        self.diff_params = config.differential
        self.condition_column = config.condition_config.column
        self.inference = DefaultInference(n_cpus=self.diff_params.get("n_cpus", 1))

    def _comparison_levels(
        self, comparison: Optional[Dict[str, str]] = None
    ) -> Tuple[str, str]:
        if comparison is None:
            comparison = self.diff_params.get("comparison", {})
        return comparison.get("control", "Ctrl"), comparison.get("treatment", "SLE")

    def _align(
        self, counts: pd.DataFrame, metadata: pd.DataFrame, levels: Sequence[str]
    ) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """Restrict to compared samples and put metadata in matrix column order"""

        missing = [sample for sample in counts.columns if sample not in metadata.index]
        if missing:
            raise MalformedInputError(f"No metadata record for samples: {missing}")

        metadata = metadata.loc[counts.columns]
        keep = metadata[self.condition_column].isin(levels)

        if not keep.all():
            dropped = metadata.index[~keep].tolist()
            logger.info(f"Excluding {len(dropped)} samples outside the comparison")

        return counts.loc[:, keep.to_numpy()], metadata.loc[keep, [self.condition_column]]

    @log_execution_time
    def fit(
        self,
        counts: pd.DataFrame,
        metadata: pd.DataFrame,
        comparison: Optional[Dict[str, str]] = None,
    ) -> FittedModel:
        """
        Fit the negative binomial GLM with condition as the only covariate

        Args:
            counts: Genes x samples integer count matrix
            metadata: Sample metadata indexed by sample
            comparison: Dict with ``control`` and ``treatment`` levels;
                defaults to the configured comparison

        Returns:
            FittedModel with size factors and dispersions

        Raises:
            ModelConvergenceError: Too few replicates or the fit failed
        """
        control, treatment = self._comparison_levels(comparison)
        counts, metadata = self._align(counts, metadata, [control, treatment])

        check_replicates(
            metadata,
            self.condition_column,
            levels=[control, treatment],
            min_replicates=self.diff_params.get("min_replicates", 2),
        )

        logger.info(
            f"Fitting DESeq2 model on {counts.shape[0]} genes x {counts.shape[1]} samples "
            f"(design ~{self.condition_column})"
        )

        try:
            dds = DeseqDataSet(
                counts=counts.T,
                metadata=metadata,
                design=f"~{self.condition_column}",
                refit_cooks=self.diff_params.get("refit_cooks", True),
                inference=self.inference,
                quiet=True,
            )
            dds.deseq2()
        except (ValueError, RuntimeError, np.linalg.LinAlgError) as e:
            raise ModelConvergenceError(f"DESeq2 model fit failed: {e}") from e

        genes = counts.index
        fitted = FittedModel(
            dds=dds,
            counts=counts,
            metadata=metadata,
            condition_column=self.condition_column,
            control=control,
            treatment=treatment,
            size_factors=pd.Series(
                _sample_vector(dds, "size_factors"), index=counts.columns, name="size_factor"
            ),
            genewise_dispersions=pd.Series(
                _gene_vector(dds, "genewise_dispersions"), index=genes
            ),
            trend_dispersions=pd.Series(
                _gene_vector(dds, "fitted_dispersions"), index=genes
            ),
            dispersions=pd.Series(_gene_vector(dds, "dispersions"), index=genes),
        )

        logger.info(
            "Size factors range "
            f"{fitted.size_factors.min():.3f}-{fitted.size_factors.max():.3f}"
        )

        return fitted

    def test(
        self,
        fitted: FittedModel,
        alpha: Optional[float] = None,
    ) -> pd.DataFrame:
        """
        Wald test of treatment vs control log2 fold change against zero

        Cook's distance outliers get a missing p-value and, when independent
        filtering is on, low-mean genes get a missing adjusted p-value.

        Args:
            fitted: Model returned by :meth:`fit`
            alpha: Target FDR for independent filtering

        Returns:
            Per-gene result table in input gene order
        """
        if alpha is None:
            alpha = self.diff_params.get("fdr_threshold", 0.05)

        stats = DeseqStats(
            fitted.dds,
            contrast=[fitted.condition_column, fitted.treatment, fitted.control],
            alpha=alpha,
            cooks_filter=self.diff_params.get("cooks_filter", True),
            independent_filter=self.diff_params.get("independent_filter", True),
            inference=self.inference,
            quiet=True,
        )
        stats.summary()

        results = stats.results_df.rename(columns=RESULT_COLUMNS)
        results = results.reindex(fitted.counts.index)
        results.index.name = fitted.counts.index.name

        all_zero = fitted.counts.sum(axis=1) == 0
        results.loc[all_zero, ["p_value", "adjusted_p_value"]] = np.nan

        return results[list(RESULT_COLUMNS.values())]
