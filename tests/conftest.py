"""Pytest fixtures for MonoFlow tests."""
import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from monoflow.config import Config

SAMPLES = ["Ctrl_01", "Ctrl_02", "Ctrl_03", "SLE_01", "SLE_02", "SLE_03"]

# featureCounts writes the BAM paths it was given as column names
SAMPLE_PATHS = [
    "star/Ctrl_01_Aligned.sortedByCoord.out.bam",
    "star/Ctrl_02_Aligned.sortedByCoord.out.bam",
    "star/Ctrl_03/Aligned.sortedByCoord.out.bam",
    "star/SLE_01.Aligned.sortedByCoord.out.bam",
    "/data/star/SLE_02_Aligned.sortedByCoord.out.bam",
    "SLE_03.bam",
]


def negative_binomial_counts(rng, means, n_samples, size=10):
    """Counts with mean ``means`` (per gene) and dispersion ``1 / size``."""
    means = np.asarray(means, dtype=float)[:, None]
    p = size / (size + means)
    return rng.negative_binomial(size, np.repeat(p, n_samples, axis=1))


def gene_ids(n, start=1):
    return [f"ENSG{i:011d}.{i % 7 + 1}" for i in range(start, start + n)]


@pytest.fixture
def rng():
    return np.random.default_rng(0)


@pytest.fixture
def count_matrix(rng):
    """200 genes x 6 samples; genes 0-9 up and 10-19 down in SLE."""
    n_genes = 200
    means = rng.uniform(50, 500, n_genes)

    ctrl = negative_binomial_counts(rng, means, 3)
    sle_means = means.copy()
    sle_means[:10] *= 8
    sle_means[10:20] /= 8
    sle = negative_binomial_counts(rng, sle_means, 3)

    matrix = pd.DataFrame(
        np.hstack([ctrl, sle]).astype(np.int64),
        index=pd.Index(gene_ids(n_genes), name="Geneid"),
        columns=SAMPLES,
    )
    return matrix


@pytest.fixture
def sample_metadata():
    return pd.DataFrame(
        {"condition": ["Ctrl"] * 3 + ["SLE"] * 3},
        index=pd.Index(SAMPLES, name="sample"),
    )


def write_featurecounts(path, matrix, sample_columns=None):
    """Write ``matrix`` in featureCounts layout with a leading comment line."""
    table = pd.DataFrame(
        {
            "Chr": "chr1",
            "Start": np.arange(len(matrix)) * 1000 + 1,
            "End": np.arange(len(matrix)) * 1000 + 500,
            "Strand": "+",
            "Length": 500,
        },
        index=matrix.index,
    )
    counts = matrix.copy()
    if sample_columns is not None:
        counts.columns = sample_columns
    table = table.join(counts)

    with open(path, "w") as f:
        f.write(
            "# Program:featureCounts v2.0.1; Command:\"featureCounts\" "
            "\"-a\" \"gencode.v38.annotation.gtf\" \"-o\" \"counts.txt\"\n"
        )
        table.to_csv(f, sep="\t", index_label="Geneid")
    return path


@pytest.fixture
def featurecounts_file(tmp_path, count_matrix):
    return write_featurecounts(
        tmp_path / "featureCounts.txt", count_matrix, SAMPLE_PATHS
    )


@pytest.fixture
def lookup_file(tmp_path, count_matrix):
    """Symbols for the first 150 genes; the rest stay unmapped."""
    ids = [gene_id.split(".")[0] for gene_id in count_matrix.index[:150]]
    lookup = pd.DataFrame(
        {
            "ensembl_gene_id": ids,
            "gene_symbol": [f"GENE{i}" for i in range(len(ids))],
        }
    )
    path = tmp_path / "symbols.tsv"
    lookup.to_csv(path, sep="\t", index=False)
    return path


@pytest.fixture
def config(tmp_path):
    return Config(
        output_dir=str(tmp_path / "results"),
        annotation={"cache_dir": str(tmp_path / "cache")},
        visualization={"dpi": 50},
    )
