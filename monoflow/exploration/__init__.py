"""
Exploratory projection for MonoFlow

Variance-stabilized counts, sample correlation and PCA, used to look for
outlier samples and condition structure before interpreting DE results.
"""

from .projection import (ExploratoryProjection, PCAResult, ProjectionResult,
                         principal_components, sample_correlation,
                         variance_stabilize)

__all__ = [
    "ExploratoryProjection",
    "ProjectionResult",
    "PCAResult",
    "variance_stabilize",
    "sample_correlation",
    "principal_components",
]
