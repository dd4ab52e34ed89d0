"""
Gene annotation for MonoFlow

Maps versioned Ensembl gene identifiers in result tables to gene symbols.
"""

from .annotations import (BiomartClient, SymbolLookup, annotate_results,
                          deduplicate_lookup, read_lookup_file, strip_version,
                          strip_versions)
from .caching import AnnotationCache

__all__ = [
    "strip_version",
    "strip_versions",
    "deduplicate_lookup",
    "annotate_results",
    "read_lookup_file",
    "BiomartClient",
    "SymbolLookup",
    "AnnotationCache",
]
