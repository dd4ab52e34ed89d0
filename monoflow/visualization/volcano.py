"""
MA and volcano plots of differential expression results
"""

from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from ..utils import get_logger
from .plots import save_figure

logger = get_logger(__name__)

COLORS = {"up": "#D55E00", "down": "#0072B2", "significant": "#CC3311", "ns": "lightgray"}


def _gene_labels(results: pd.DataFrame) -> pd.Series:
    labels = pd.Series(results.index.astype(str), index=results.index)
    if "gene_symbol" in results.columns:
        labels = results["gene_symbol"].where(results["gene_symbol"].notna(), labels)
    return labels


def _neg_log10(p_values: pd.Series) -> pd.Series:
    # p-values that underflow to zero are drawn at the smallest non-zero value
    positive = p_values[p_values > 0]
    floor = positive.min() if len(positive) else 1e-300
    return -np.log10(p_values.clip(lower=floor))


def create_ma_plot(
    results: pd.DataFrame,
    p_cutoff: float = 0.05,
    p_column: str = "adjusted_p_value",
    ylim: Optional[Tuple[float, float]] = None,
    title: Optional[str] = None,
    output_file: Optional[Union[str, Path]] = None,
    dpi: int = 300,
    formats: Optional[Sequence[str]] = None,
) -> Union[plt.Figure, Path]:
    """
    Mean of normalized counts against log2 fold change

    Args:
        results: Result table with ``base_mean``, ``log2_fold_change`` and
            ``p_column``
        p_cutoff: Significance threshold on ``p_column``
        p_column: Column used for significance colouring
        ylim: Optional (lower, upper) log2 fold change limits; points
            outside are drawn as triangles on the limit
        title: Plot title
        output_file: Save here when given, otherwise return the figure

    Returns:
        Figure, or path of the saved plot
    """
    data = results.loc[
        (results["base_mean"] > 0) & results["log2_fold_change"].notna(),
        ["base_mean", "log2_fold_change", p_column],
    ]

    significant = data[p_column] < p_cutoff
    lfc = data["log2_fold_change"]
    shape = pd.Series("o", index=data.index)

    if ylim is not None:
        lower, upper = ylim
        shape[lfc > upper] = "^"
        shape[lfc < lower] = "v"
        lfc = lfc.clip(lower, upper)

    fig, ax = plt.subplots(1, 1, figsize=(9, 6))

    groups = (
        (False, COLORS["ns"], 0.4, 4, "not significant"),
        (True, COLORS["significant"], 0.8, 8,
         f"{p_column} < {p_cutoff} ({int(significant.sum())})"),
    )
    for is_sig, color, alpha, size, label in groups:
        for marker in ("o", "^", "v"):
            mask = (shape == marker) & (significant == is_sig)
            if not mask.any():
                continue
            ax.scatter(
                data.loc[mask, "base_mean"],
                lfc[mask],
                c=color,
                s=size if marker == "o" else size * 3,
                marker=marker,
                alpha=alpha,
                linewidths=0,
                label=label if marker == "o" else None,
            )

    ax.set_xscale("log")
    ax.axhline(0, color="black", linewidth=0.8)
    if ylim is not None:
        ax.set_ylim(ylim[0] * 1.05, ylim[1] * 1.05)

    ax.set_xlabel("Mean of normalized counts")
    ax.set_ylabel("log2 fold change")
    ax.set_title(title or "MA plot")
    ax.grid(True, alpha=0.3)
    ax.legend(loc="best", framealpha=0.95)

    plt.tight_layout()

    if output_file is None:
        return fig
    return save_figure(fig, output_file, dpi, formats)[0]


def create_volcano_plot(
    results: pd.DataFrame,
    p_cutoff: float = 0.05,
    lfc_cutoff: float = 1.0,
    p_column: str = "adjusted_p_value",
    xlim: Optional[Tuple[float, float]] = None,
    ylim: Optional[Tuple[float, float]] = None,
    label_top: int = 10,
    title: Optional[str] = None,
    output_file: Optional[Union[str, Path]] = None,
    dpi: int = 300,
    formats: Optional[Sequence[str]] = None,
) -> Union[plt.Figure, Path]:
    """
    log2 fold change against -log10 p-value

    Genes passing both ``p_cutoff`` and ``|log2FC| > lfc_cutoff`` are
    coloured by direction and the ``label_top`` most significant of them are
    labeled with their symbol (identifier when no symbol is known).

    Returns:
        Figure, or path of the saved plot
    """
    data = results.loc[
        results[p_column].notna() & results["log2_fold_change"].notna()
    ]

    x = data["log2_fold_change"]
    y = _neg_log10(data[p_column])

    passes_p = data[p_column] < p_cutoff
    up = passes_p & (x > lfc_cutoff)
    down = passes_p & (x < -lfc_cutoff)
    other = ~(up | down)

    fig, ax = plt.subplots(1, 1, figsize=(9, 7))

    ax.scatter(x[other], y[other], c=COLORS["ns"], alpha=0.4, s=4, label="not significant")
    ax.scatter(x[up], y[up], c=COLORS["up"], alpha=0.8, s=10, label=f"up ({int(up.sum())})")
    ax.scatter(
        x[down], y[down], c=COLORS["down"], alpha=0.8, s=10, label=f"down ({int(down.sum())})"
    )

    if label_top > 0:
        hits = data.loc[up | down].sort_values(p_column).head(label_top)
        labels = _gene_labels(hits)
        for gene in hits.index:
            ax.annotate(
                labels[gene],
                (x[gene], y[gene]),
                xytext=(3, 3),
                textcoords="offset points",
                fontsize=7,
            )

    ax.axvline(lfc_cutoff, color="black", linestyle="--", alpha=0.5)
    ax.axvline(-lfc_cutoff, color="black", linestyle="--", alpha=0.5)
    ax.axhline(-np.log10(p_cutoff), color="black", linestyle="--", alpha=0.5)

    if xlim is not None:
        ax.set_xlim(xlim)
    if ylim is not None:
        ax.set_ylim(ylim)

    ax.set_xlabel("log2 fold change")
    ax.set_ylabel(f"-log10({p_column})")
    ax.set_title(title or "Volcano plot")
    ax.grid(True, alpha=0.3)
    ax.legend(loc="best", framealpha=0.95)

    plt.tight_layout()

    if output_file is None:
        return fig
    return save_figure(fig, output_file, dpi, formats)[0]
