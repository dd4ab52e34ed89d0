"""
Differential expression result containers, classification and export
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd

from ..utils import get_logger

logger = get_logger(__name__)

UP = "Up-regulated"
DOWN = "Down-regulated"
NOT_SIGNIFICANT = "Not Significant"


@dataclass
class DifferentialResult:
    """Result of one treatment-vs-control comparison"""

    comparison_name: str
    control: str
    treatment: str

    results_table: Optional[pd.DataFrame] = None
    size_factors: Optional[pd.Series] = None
    dispersions: Optional[pd.DataFrame] = None

    # Statistics
    n_tested: Optional[int] = None
    n_significant: Optional[int] = None
    n_up_regulated: Optional[int] = None
    n_down_regulated: Optional[int] = None
    n_outliers: Optional[int] = None
    n_filtered: Optional[int] = None

    fdr_threshold: float = 0.05
    logfc_threshold: float = 1.0
    min_fdr: Optional[float] = None
    max_abs_logfc: Optional[float] = None

    output_files: Dict[str, Path] = field(default_factory=dict)
    execution_time: Optional[float] = None


def classify_results(
    results_df: pd.DataFrame,
    fdr_threshold: float = 0.05,
    logfc_threshold: float = 1.0,
) -> pd.DataFrame:
    """Label every gene up / down / not significant"""

    results_df = results_df.copy()

    significant = results_df["adjusted_p_value"] <= fdr_threshold
    up_mask = significant & (results_df["log2_fold_change"] > logfc_threshold)
    down_mask = significant & (results_df["log2_fold_change"] < -logfc_threshold)

    results_df["regulation"] = NOT_SIGNIFICANT
    results_df.loc[up_mask, "regulation"] = UP
    results_df.loc[down_mask, "regulation"] = DOWN

    return results_df


def calculate_statistics(
    results_df: pd.DataFrame, counts: Optional[pd.DataFrame] = None
) -> Dict[str, Any]:
    """Summary counts for a classified result table"""

    p_values = results_df["p_value"]
    adjusted = results_df["adjusted_p_value"]

    stats = {
        "n_tested": int(p_values.notna().sum()),
        "n_up_regulated": int((results_df["regulation"] == UP).sum()),
        "n_down_regulated": int((results_df["regulation"] == DOWN).sum()),
        "n_filtered": int((p_values.notna() & adjusted.isna()).sum()),
        "min_fdr": float(adjusted.min()) if adjusted.notna().any() else None,
        "max_abs_logfc": (
            float(np.abs(results_df["log2_fold_change"]).max())
            if results_df["log2_fold_change"].notna().any()
            else None
        ),
    }
    stats["n_significant"] = stats["n_up_regulated"] + stats["n_down_regulated"]

    expressed = results_df["base_mean"] > 0
    if counts is not None:
        expressed &= counts.reindex(results_df.index).sum(axis=1) > 0
    stats["n_outliers"] = int((expressed & p_values.isna()).sum())

    return stats


def export_results(
    result: DifferentialResult,
    output_dir: Union[str, Path],
    prefix: Optional[str] = None,
) -> Dict[str, Path]:
    """
    Write result tables as TSV

    Args:
        result: Completed differential result
        output_dir: Directory to write into
        prefix: File name prefix, defaults to the comparison name

    Returns:
        Mapping of table kind to written path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    prefix = prefix or result.comparison_name

    table = result.results_table
    output_files = {}

    results_file = output_dir / f"{prefix}_results.tsv"
    table.to_csv(results_file, sep="\t", index_label="gene_id")
    output_files["results"] = results_file

    subsets = {
        "significant": table[table["regulation"] != NOT_SIGNIFICANT],
        "up_regulated": table[table["regulation"] == UP],
        "down_regulated": table[table["regulation"] == DOWN],
    }
    for kind, subset in subsets.items():
        if len(subset) == 0:
            continue
        path = output_dir / f"{prefix}_{kind}.tsv"
        subset.sort_values("adjusted_p_value").to_csv(
            path, sep="\t", index_label="gene_id"
        )
        output_files[kind] = path

    if result.size_factors is not None:
        path = output_dir / "size_factors.tsv"
        result.size_factors.to_csv(path, sep="\t", index_label="sample")
        output_files["size_factors"] = path

    if result.dispersions is not None:
        path = output_dir / "dispersions.tsv"
        result.dispersions.to_csv(path, sep="\t", index_label="gene_id")
        output_files["dispersions"] = path

    logger.info(f"Results saved: {len(output_files)} files for {prefix}")

    return output_files
