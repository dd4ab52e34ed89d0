"""
featureCounts table loading and normalization
"""

import re
from pathlib import Path, PurePosixPath
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..exceptions import MalformedInputError
from ..utils import get_logger

logger = get_logger(__name__)

GENE_ID_COLUMN = "Geneid"
ANNOTATION_COLUMNS = ("Chr", "Start", "End", "Strand", "Length")
SAMPLE_SUFFIXES = (".bam",)
SAMPLE_PATTERNS = (r"[._]?Aligned\.sortedByCoord\.out$",)


def normalize_sample_name(
    name: str,
    suffixes: Sequence[str] = SAMPLE_SUFFIXES,
    patterns: Sequence[str] = SAMPLE_PATTERNS,
) -> str:
    """
    Reduce an alignment file path to the bare sample identifier

    ``star/Ctrl_06_Aligned.sortedByCoord.out.bam`` and
    ``star/Ctrl_06/Aligned.sortedByCoord.out.bam`` both become ``Ctrl_06``.
    Names that are already bare are returned unchanged.

    Args:
        name: Column name from the count table
        suffixes: File suffixes removed from the end of the name
        patterns: Regular expressions removed from the file stem

    Returns:
        Sample identifier (may be empty if nothing identifying is left)
    """
    path = PurePosixPath(str(name).strip().replace("\\", "/"))
    stem = path.name

    for suffix in suffixes:
        if suffix and stem.endswith(suffix):
            stem = stem[: -len(suffix)]

    for pattern in patterns:
        stem = re.sub(pattern, "", stem)

    if not stem and path.parent.name:
        stem = path.parent.name

    return stem


def normalize_count_table(
    table: pd.DataFrame,
    annotation_columns: Sequence[str] = ANNOTATION_COLUMNS,
    suffixes: Sequence[str] = SAMPLE_SUFFIXES,
    patterns: Sequence[str] = SAMPLE_PATTERNS,
) -> pd.DataFrame:
    """
    Drop annotation columns and rename sample columns to bare identifiers

    Only annotation columns that are present are dropped, so the function is
    idempotent on its own output.

    Args:
        table: Gene-indexed count table
        annotation_columns: Non-sample columns to remove
        suffixes: Passed to :func:`normalize_sample_name`
        patterns: Passed to :func:`normalize_sample_name`

    Returns:
        New DataFrame with one column per sample
    """
    present = [col for col in annotation_columns if col in table.columns]
    matrix = table.drop(columns=present)

    renamed = [normalize_sample_name(col, suffixes, patterns) for col in matrix.columns]
    matrix.columns = renamed

    return matrix


def _validate_counts(matrix: pd.DataFrame) -> pd.DataFrame:
    """Check the matrix is rectangular, complete, non-negative and integral"""

    if matrix.shape[0] == 0:
        raise MalformedInputError("Count table contains no genes")
    if matrix.shape[1] == 0:
        raise MalformedInputError("Count table contains no sample columns")

    empty_names = [col for col in matrix.columns if not col]
    if empty_names:
        raise MalformedInputError("Sample column name is empty after normalization")

    duplicated_samples = matrix.columns[matrix.columns.duplicated()].tolist()
    if duplicated_samples:
        raise MalformedInputError(f"Duplicate sample identifiers: {duplicated_samples}")

    duplicated_genes = matrix.index[matrix.index.duplicated()].tolist()
    if duplicated_genes:
        raise MalformedInputError(
            f"Duplicate gene identifiers: {duplicated_genes[:5]}"
            f"{' ...' if len(duplicated_genes) > 5 else ''}"
        )

    values = matrix.apply(pd.to_numeric, errors="coerce")

    missing = values.isna()
    if missing.values.any():
        column = missing.any(axis=0).idxmax()
        raise MalformedInputError(
            f"Missing or non-numeric counts in sample column '{column}'"
        )

    array = values.to_numpy(dtype=float)
    if (array < 0).any():
        raise MalformedInputError("Count table contains negative values")
    if not np.all(np.equal(np.mod(array, 1), 0)):
        raise MalformedInputError("Count table contains non-integer values")

    return values.astype(np.int64)


def load_count_matrix(
    counts_file: Union[str, Path],
    comment: str = "#",
    annotation_columns: Sequence[str] = ANNOTATION_COLUMNS,
    suffixes: Sequence[str] = SAMPLE_SUFFIXES,
    patterns: Sequence[str] = SAMPLE_PATTERNS,
    require_annotation: bool = True,
) -> pd.DataFrame:
    """
    Load a featureCounts table into a gene-by-sample count matrix

    Args:
        counts_file: Tab-separated featureCounts output
        comment: Prefix marking comment lines
        annotation_columns: Leading non-sample columns to drop
        suffixes: File suffixes stripped from sample columns
        patterns: Aligner output patterns stripped from sample columns
        require_annotation: Fail when an annotation column is absent

    Returns:
        Integer DataFrame indexed by gene identifier, one column per sample

    Raises:
        MalformedInputError: The file is missing, unparseable or invalid
    """
    counts_path = Path(counts_file)

    if not counts_path.is_file():
        raise MalformedInputError(f"Count table not found: {counts_path}")

    logger.info(f"Loading count table from {counts_path}")

    try:
        table = pd.read_csv(
            counts_path,
            sep="\t",
            comment=comment or None,
            low_memory=False,
        )
    except pd.errors.EmptyDataError as e:
        raise MalformedInputError(f"Count table is empty: {counts_path}") from e
    except pd.errors.ParserError as e:
        raise MalformedInputError(f"Cannot parse count table {counts_path}: {e}") from e

    if table.shape[1] < 2:
        raise MalformedInputError(
            f"Count table header has {table.shape[1]} column(s); "
            "expected a gene identifier column followed by sample columns"
        )

    gene_column = table.columns[0]
    if gene_column != GENE_ID_COLUMN:
        logger.debug(f"Using '{gene_column}' as the gene identifier column")

    table = table.set_index(gene_column)
    table.index = table.index.astype(str)
    table.index.name = GENE_ID_COLUMN

    if require_annotation:
        missing = [col for col in annotation_columns if col not in table.columns]
        if missing:
            raise MalformedInputError(
                f"Expected annotation column(s) missing from header: {missing}"
            )

    matrix = normalize_count_table(table, annotation_columns, suffixes, patterns)
    matrix = _validate_counts(matrix)

    logger.info(
        f"Loaded count matrix: {matrix.shape[0]} genes x {matrix.shape[1]} samples"
    )

    return matrix


def write_count_matrix(matrix: pd.DataFrame, output_file: Union[str, Path]) -> Path:
    """Write a count matrix as TSV with a leading Geneid column"""
    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    matrix.to_csv(output_path, sep="\t", index=True, index_label=GENE_ID_COLUMN)

    logger.info(f"Count matrix written to {output_path}")
    return output_path


def library_sizes(matrix: pd.DataFrame, samples: Optional[Sequence[str]] = None) -> pd.Series:
    """Total assigned reads per sample"""
    if samples is not None:
        matrix = matrix[list(samples)]
    return matrix.sum(axis=0).rename("library_size")
