"""
Sequencing-depth normalization
"""

import numpy as np
import pandas as pd


def median_of_ratios(counts: pd.DataFrame) -> pd.Series:
    """
    DESeq-style median-of-ratios size factors

    For each sample, the median over genes of count / geometric mean of that
    gene across samples. Only genes with a non-zero count in every sample
    take part.

    Args:
        counts: Genes x samples count matrix

    Returns:
        Size factor per sample

    Raises:
        ValueError: No gene is expressed in every sample
    """
    expressed = (counts > 0).all(axis=1)
    if not expressed.any():
        raise ValueError(
            "Every gene has a zero count in at least one sample; "
            "median-of-ratios size factors are undefined"
        )

    log_counts = np.log(counts.loc[expressed].astype(float))
    log_ratios = log_counts.sub(log_counts.mean(axis=1), axis=0)

    return np.exp(log_ratios.median(axis=0)).rename("size_factor")


def normalized_counts(counts: pd.DataFrame, size_factors: pd.Series) -> pd.DataFrame:
    """Divide each sample column by its size factor"""
    return counts.div(size_factors.reindex(counts.columns), axis=1)
