"""Tests for featureCounts table loading."""
import numpy as np
import pandas as pd
import pytest

from conftest import SAMPLES, write_featurecounts
from monoflow.counts import (library_sizes, load_count_matrix,
                             normalize_count_table, normalize_sample_name,
                             write_count_matrix)
from monoflow.exceptions import MalformedInputError


class TestNormalizeSampleName:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("star/Ctrl_06_Aligned.sortedByCoord.out.bam", "Ctrl_06"),
            ("star/SLE_12.Aligned.sortedByCoord.out.bam", "SLE_12"),
            ("/abs/path/SLE_01Aligned.sortedByCoord.out.bam", "SLE_01"),
            ("star/Ctrl_03/Aligned.sortedByCoord.out.bam", "Ctrl_03"),
            ("SLE_03.bam", "SLE_03"),
            ("Ctrl_06", "Ctrl_06"),
        ],
    )
    def test_strips_paths_and_aligner_suffixes(self, raw, expected):
        assert normalize_sample_name(raw) == expected

    def test_idempotent(self):
        once = normalize_sample_name("star/Ctrl_06_Aligned.sortedByCoord.out.bam")
        assert normalize_sample_name(once) == once


class TestLoadCountMatrix:

    def test_loads_featurecounts_output(self, featurecounts_file, count_matrix):
        matrix = load_count_matrix(featurecounts_file)

        assert list(matrix.columns) == SAMPLES
        assert matrix.index.name == "Geneid"
        assert matrix.shape == (200, 6)
        assert all(dtype == np.int64 for dtype in matrix.dtypes)
        pd.testing.assert_frame_equal(matrix, count_matrix)

    def test_annotation_columns_dropped(self, featurecounts_file):
        matrix = load_count_matrix(featurecounts_file)
        for column in ["Chr", "Start", "End", "Strand", "Length"]:
            assert column not in matrix.columns

    def test_round_trip_through_written_matrix(self, featurecounts_file, tmp_path):
        matrix = load_count_matrix(featurecounts_file)

        path = write_count_matrix(matrix, tmp_path / "out" / "count_matrix.tsv")
        reloaded = load_count_matrix(path, require_annotation=False)

        pd.testing.assert_frame_equal(reloaded, matrix)
        pd.testing.assert_frame_equal(normalize_count_table(matrix), matrix)

    def test_missing_file(self, tmp_path):
        with pytest.raises(MalformedInputError, match="not found"):
            load_count_matrix(tmp_path / "absent.txt")

    def test_comment_only_file(self, tmp_path):
        path = tmp_path / "empty.txt"
        path.write_text("# Program:featureCounts v2.0.1\n")
        with pytest.raises(MalformedInputError, match="empty"):
            load_count_matrix(path)

    def test_missing_annotation_column(self, tmp_path, count_matrix):
        path = write_featurecounts(tmp_path / "counts.txt", count_matrix)
        table = pd.read_csv(path, sep="\t", comment="#").drop(columns=["Strand"])
        table.to_csv(path, sep="\t", index=False)

        with pytest.raises(MalformedInputError, match="Strand"):
            load_count_matrix(path)

    def test_duplicate_gene_identifiers(self, tmp_path, count_matrix):
        duplicated = count_matrix.iloc[[0, 0, 1]]
        path = write_featurecounts(tmp_path / "counts.txt", duplicated)
        with pytest.raises(MalformedInputError, match="Duplicate gene"):
            load_count_matrix(path)

    def test_duplicate_sample_identifiers(self, tmp_path, count_matrix):
        columns = ["a/Ctrl_01.bam", "b/Ctrl_01.bam"] + SAMPLES[2:]
        path = write_featurecounts(tmp_path / "counts.txt", count_matrix, columns)
        with pytest.raises(MalformedInputError, match="Duplicate sample"):
            load_count_matrix(path)

    def test_negative_count(self, tmp_path, count_matrix):
        bad = count_matrix.copy()
        bad.iloc[3, 2] = -1
        path = write_featurecounts(tmp_path / "counts.txt", bad)
        with pytest.raises(MalformedInputError, match="negative"):
            load_count_matrix(path)

    def test_non_integer_count(self, tmp_path, count_matrix):
        bad = count_matrix.astype(float)
        bad.iloc[3, 2] = 2.5
        path = write_featurecounts(tmp_path / "counts.txt", bad)
        with pytest.raises(MalformedInputError, match="non-integer"):
            load_count_matrix(path)

    def test_missing_cell(self, tmp_path, count_matrix):
        bad = count_matrix.astype(float)
        bad.iloc[5, 1] = np.nan
        path = write_featurecounts(tmp_path / "counts.txt", bad)
        with pytest.raises(MalformedInputError, match="Missing"):
            load_count_matrix(path)

    def test_non_numeric_cell(self, tmp_path, count_matrix):
        bad = count_matrix.astype(object)
        bad.iloc[5, 1] = "n/a"
        path = write_featurecounts(tmp_path / "counts.txt", bad)
        with pytest.raises(MalformedInputError):
            load_count_matrix(path)


def test_library_sizes(count_matrix):
    sizes = library_sizes(count_matrix)
    assert sizes.name == "library_size"
    assert sizes["Ctrl_01"] == count_matrix["Ctrl_01"].sum()

    subset = library_sizes(count_matrix, ["SLE_02"])
    assert list(subset.index) == ["SLE_02"]
