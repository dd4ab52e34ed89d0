"""
MonoFlow: differential expression of SLE versus control monocytes

MonoFlow is a Python package for analyzing an RNA-seq read-count table from
human monocytes of systemic lupus erythematosus patients and healthy
controls. It takes the featureCounts output produced upstream and carries it
through to annotated, plotted differential expression results.

Main Components:
- Count matrix loading and condition labeling
- Negative binomial model fit and Wald testing (PyDESeq2)
- Variance-stabilized sample correlation and PCA
- Ensembl to gene symbol annotation (BioMart)
- Correlation heatmap, PCA, MA and volcano plots

Example:
    >>> from monoflow import MonoFlowAnalysis
    >>> analysis = MonoFlowAnalysis(config="config.yaml")
    >>> results = analysis.run_full_pipeline()
"""

import logging
import sys
from importlib import metadata
from typing import Any, Dict

try:
    __version__ = metadata.version("monoflow")
except metadata.PackageNotFoundError:
    __version__ = "0.1.0-dev"

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)

# Module imports
from . import (counts, differential, exploration, genomics, utils,
               visualization)
from .config import Config, load_config
# Main imports
from .core import MonoFlowAnalysis
from .utils import check_package_versions, setup_logging, validate_environment

__all__ = [
    "__version__",
    "MonoFlowAnalysis",
    "Config",
    "load_config",
    "setup_logging",
    "validate_environment",
    "counts",
    "differential",
    "exploration",
    "genomics",
    "visualization",
    "utils",
]


def get_info() -> Dict[str, Any]:
    """Get package information."""
    return {
        "name": "MonoFlow",
        "version": __version__,
        "description": "RNA-seq differential expression pipeline for SLE monocytes",
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        "modules": __all__[6:],  # Just the module names
    }


def check_dependencies() -> Dict[str, bool]:
    """Check if key dependencies are available."""
    return {
        name: version is not None
        for name, version in check_package_versions().items()
    }


# Initialize package
logger = logging.getLogger(__name__)
logger.debug(f"MonoFlow v{__version__} initialized")
