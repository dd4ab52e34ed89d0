"""
Variance-stabilized views of the count matrix for quality assessment
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
import pandas as pd
from pydeseq2.dds import DeseqDataSet
from pydeseq2.default_inference import DefaultInference
from sklearn.decomposition import PCA

from ..config import Config
from ..utils import get_logger, log_execution_time

logger = get_logger(__name__)


@dataclass
class PCAResult:
    """Sample coordinates on the leading principal components"""

    coordinates: pd.DataFrame
    percent_variance: pd.Series
    genes: pd.Index

    def axis_label(self, component: str) -> str:
        return f"{component}: {self.percent_variance[component]:.1f}% variance"


@dataclass
class ProjectionResult:
    transformed: pd.DataFrame
    correlation: pd.DataFrame
    pca: PCAResult


@log_execution_time
def variance_stabilize(
    counts: pd.DataFrame,
    metadata: pd.DataFrame,
    condition_column: str = "condition",
    n_cpus: int = 1,
) -> pd.DataFrame:
    """
    Variance-stabilizing transform of raw counts, blind to the design

    Low counts are compressed and high counts behave like log2, so that
    sample distances are not dominated by a few highly expressed genes.

    Args:
        counts: Genes x samples integer count matrix
        metadata: Sample metadata indexed by sample
        condition_column: Condition column passed through to PyDESeq2

    Returns:
        Genes x samples continuous matrix of the same shape as ``counts``
    """
    metadata = metadata.loc[counts.columns, [condition_column]]

    dds = DeseqDataSet(
        counts=counts.T,
        metadata=metadata,
        design=f"~{condition_column}",
        inference=DefaultInference(n_cpus=n_cpus),
        quiet=True,
    )
    dds.vst(use_design=False)

    transformed = pd.DataFrame(
        np.asarray(dds.layers["vst_counts"]).T,
        index=counts.index,
        columns=counts.columns,
    )

    logger.info(f"Variance-stabilized {transformed.shape[0]} genes")
    return transformed


def sample_correlation(
    transformed: pd.DataFrame, method: str = "pearson"
) -> pd.DataFrame:
    """Sample x sample correlation of a genes x samples matrix"""
    return transformed.corr(method=method)


def principal_components(
    transformed: pd.DataFrame,
    metadata: Optional[pd.DataFrame] = None,
    n_top: int = 500,
    n_components: int = 2,
) -> PCAResult:
    """
    PCA of samples on the most variable genes

    Args:
        transformed: Genes x samples variance-stabilized matrix
        metadata: Optional sample metadata joined onto the coordinates
        n_top: Number of highest-variance genes used
        n_components: Number of components kept

    Returns:
        PCAResult with coordinates and percent variance per component
    """
    variances = transformed.var(axis=1)
    top_genes = variances.sort_values(ascending=False).index[:n_top]

    data = transformed.loc[top_genes].T
    n_components = min(n_components, data.shape[0], data.shape[1])

    pca = PCA(n_components=n_components)
    coords = pca.fit_transform(data.to_numpy())

    components = [f"PC{i + 1}" for i in range(n_components)]
    coordinates = pd.DataFrame(coords, index=data.index, columns=components)
    percent_variance = pd.Series(
        pca.explained_variance_ratio_ * 100, index=components, name="percent_variance"
    )

    if metadata is not None:
        coordinates = coordinates.join(metadata)

    logger.info(
        f"PCA on {len(top_genes)} genes: "
        + ", ".join(f"{pc}={pct:.1f}%" for pc, pct in percent_variance.items())
    )

    return PCAResult(
        coordinates=coordinates, percent_variance=percent_variance, genes=top_genes
    )


class ExploratoryProjection:
    """Runs the transform, correlation and PCA views with configured settings"""

    def __init__(self, config: Config):
        self.config = config
        self.params = config.exploration
        self.condition_column = config.condition_config.column
        self.n_cpus = config.differential.get("n_cpus", 1)

    def run(self, counts: pd.DataFrame, metadata: pd.DataFrame) -> ProjectionResult:
        transformed = variance_stabilize(
            counts, metadata, self.condition_column, n_cpus=self.n_cpus
        )
        correlation = sample_correlation(
            transformed, self.params.get("correlation_method", "pearson")
        )
        pca = principal_components(
            transformed,
            metadata[[self.condition_column]],
            n_top=self.params.get("n_top_genes", 500),
            n_components=self.params.get("n_components", 2),
        )
        return ProjectionResult(transformed=transformed, correlation=correlation, pca=pca)

    def save(
        self, result: ProjectionResult, output_dir: Union[str, Path]
    ) -> Dict[str, Path]:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        files = {
            "vst_counts": output_dir / "vst_counts.tsv",
            "sample_correlation": output_dir / "sample_correlation.tsv",
            "pca_coordinates": output_dir / "pca_coordinates.tsv",
            "pca_variance": output_dir / "pca_variance.tsv",
        }
        result.transformed.to_csv(files["vst_counts"], sep="\t", index_label="gene_id")
        result.correlation.to_csv(files["sample_correlation"], sep="\t")
        result.pca.coordinates.to_csv(files["pca_coordinates"], sep="\t")
        result.pca.percent_variance.to_csv(
            files["pca_variance"], sep="\t", index_label="component"
        )

        logger.info(f"Exploratory tables saved to {output_dir}")
        return files
