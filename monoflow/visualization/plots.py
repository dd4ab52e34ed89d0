"""
Sample-level plots: correlation heatmap and PCA scatter
"""

from pathlib import Path
from typing import List, Optional, Sequence, Union

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from ..exploration import PCAResult
from ..utils import get_logger

logger = get_logger(__name__)

CONDITION_COLORS = {"Ctrl": "#56B4E9", "SLE": "#E69F00"}


def save_figure(
    fig: plt.Figure,
    output_file: Union[str, Path],
    dpi: int = 300,
    formats: Optional[Sequence[str]] = None,
) -> List[Path]:
    """
    Save a figure in one or more formats and close it

    Args:
        fig: Figure to save
        output_file: Target path; its suffix is replaced per format
        dpi: Resolution for raster formats
        formats: File formats, defaults to the suffix of ``output_file``

    Returns:
        Written paths, primary format first
    """
    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if not formats:
        formats = [output_path.suffix.lstrip(".") or "png"]

    written = []
    for fmt in formats:
        path = output_path.with_suffix(f".{fmt}")
        fig.savefig(path, dpi=dpi, bbox_inches="tight")
        written.append(path)

    plt.close(fig)
    logger.info(f"Plot saved: {written[0]}")
    return written


def _condition_palette(conditions: pd.Series) -> dict:
    levels = list(pd.unique(conditions))
    fallback = sns.color_palette("Set2", len(levels))
    return {
        level: CONDITION_COLORS.get(level, fallback[i]) for i, level in enumerate(levels)
    }


def create_correlation_heatmap(
    correlation: pd.DataFrame,
    metadata: Optional[pd.DataFrame] = None,
    condition_column: str = "condition",
    cmap: str = "viridis",
    output_file: Optional[Union[str, Path]] = None,
    dpi: int = 300,
    formats: Optional[Sequence[str]] = None,
) -> Union[plt.Figure, Path]:
    """Hierarchically clustered sample x sample correlation heatmap"""

    row_colors = None
    if metadata is not None and condition_column in metadata.columns:
        conditions = metadata.loc[correlation.index, condition_column]
        row_colors = conditions.map(_condition_palette(conditions))

    size = max(6, 0.35 * len(correlation))
    grid = sns.clustermap(
        correlation,
        cmap=cmap,
        row_colors=row_colors,
        col_colors=row_colors,
        figsize=(size, size),
        xticklabels=True,
        yticklabels=True,
        cbar_kws={"label": "Pearson r"},
    )
    grid.fig.suptitle("Sample correlation (variance-stabilized counts)", y=1.02)

    if output_file is None:
        return grid.fig
    return save_figure(grid.fig, output_file, dpi, formats)[0]


def create_pca_plot(
    pca_result: PCAResult,
    condition_column: str = "condition",
    label_samples: bool = True,
    output_file: Optional[Union[str, Path]] = None,
    dpi: int = 300,
    formats: Optional[Sequence[str]] = None,
) -> Union[plt.Figure, Path]:
    """Scatter of samples on PC1/PC2 coloured by condition"""

    coords = pca_result.coordinates
    fig, ax = plt.subplots(1, 1, figsize=(8, 6))

    hue = condition_column if condition_column in coords.columns else None
    palette = _condition_palette(coords[hue]) if hue else None

    sns.scatterplot(
        data=coords,
        x="PC1",
        y="PC2",
        hue=hue,
        palette=palette,
        s=80,
        edgecolor="black",
        ax=ax,
    )

    if label_samples:
        for sample, row in coords.iterrows():
            ax.annotate(
                sample,
                (row["PC1"], row["PC2"]),
                xytext=(4, 4),
                textcoords="offset points",
                fontsize=7,
            )

    ax.set_xlabel(pca_result.axis_label("PC1"))
    ax.set_ylabel(pca_result.axis_label("PC2"))
    ax.set_title(f"PCA of top {len(pca_result.genes)} variable genes")
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if output_file is None:
        return fig
    return save_figure(fig, output_file, dpi, formats)[0]
