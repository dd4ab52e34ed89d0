"""
Visualization module for MonoFlow

Correlation heatmap and PCA plots of samples, MA and volcano plots of
differential expression results.
"""

from .plots import create_correlation_heatmap, create_pca_plot, save_figure
from .volcano import create_ma_plot, create_volcano_plot

__all__ = [
    "create_correlation_heatmap",
    "create_pca_plot",
    "create_ma_plot",
    "create_volcano_plot",
    "save_figure",
]
