"""
Count matrix loading for MonoFlow

This module parses featureCounts output into a gene-by-sample count matrix
and derives per-sample condition labels from the sample identifiers.
"""

from .conditions import build_sample_metadata, classify_condition
from .loader import (ANNOTATION_COLUMNS, GENE_ID_COLUMN, library_sizes,
                     load_count_matrix, normalize_count_table,
                     normalize_sample_name, write_count_matrix)

__all__ = [
    "load_count_matrix",
    "normalize_count_table",
    "normalize_sample_name",
    "write_count_matrix",
    "library_sizes",
    "classify_condition",
    "build_sample_metadata",
    "ANNOTATION_COLUMNS",
    "GENE_ID_COLUMN",
]
