"""Tests for Ensembl identifier to gene symbol annotation."""
import logging
from unittest.mock import Mock

import numpy as np
import pandas as pd
import pytest
import requests

from monoflow.config import Config
from monoflow.exceptions import AnnotationError
from monoflow.genomics import (AnnotationCache, BiomartClient, SymbolLookup,
                               annotate_results, deduplicate_lookup,
                               read_lookup_file, strip_version)

BIOMART_TSV = (
    "ENSG00000187608\tISG15\tprotein_coding\tISG15 ubiquitin like modifier\n"
    "ENSG00000115415\tSTAT1\tprotein_coding\tsignal transducer\n"
    "ENSG00000115415\tSTAT1-alt\tprotein_coding\t\n"
    "ENSG00000284662\t\tlncRNA\t\n"
)


def _session(text="", status_error=None, post_error=None):
    response = Mock()
    response.text = text
    response.raise_for_status = Mock(side_effect=status_error)

    session = Mock()
    if post_error is not None:
        session.post.side_effect = post_error
    else:
        session.post.return_value = response
    return session


@pytest.fixture
def results_table():
    return pd.DataFrame(
        {"log2_fold_change": [2.1, -0.3, 0.8]},
        index=pd.Index(
            ["ENSG00000187608.5", "ENSG00000115415.20", "ENSG00000999999.1"],
            name="Geneid",
        ),
    )


class TestStripVersion:

    def test_strips_trailing_version(self):
        assert strip_version("ENSG00000187608.5") == "ENSG00000187608"

    def test_unversioned_unchanged(self):
        assert strip_version("ENSG00000187608") == "ENSG00000187608"

    def test_only_numeric_suffix_removed(self):
        assert strip_version("ENSG00000187608.5_PAR_Y") == "ENSG00000187608.5_PAR_Y"


def test_deduplicate_keeps_first_with_symbol():
    lookup = pd.DataFrame(
        {
            "ensembl_gene_id": ["E1", "E1", "E2", "E2"],
            "gene_symbol": ["FIRST", "SECOND", np.nan, "ONLY"],
        }
    )
    deduplicated = deduplicate_lookup(lookup)

    assert deduplicated.set_index("ensembl_gene_id")["gene_symbol"].to_dict() == {
        "E1": "FIRST",
        "E2": "ONLY",
    }


class TestAnnotateResults:

    def test_left_join_preserves_rows(self, results_table):
        lookup = pd.DataFrame(
            {
                "ensembl_gene_id": ["ENSG00000187608", "ENSG00000115415", "ENSG00000115415"],
                "gene_symbol": ["ISG15", "STAT1", "STAT1-alt"],
            }
        )
        annotated = annotate_results(results_table, lookup)

        assert annotated.index.equals(results_table.index)
        assert annotated.loc["ENSG00000187608.5", "gene_symbol"] == "ISG15"
        assert annotated.loc["ENSG00000115415.20", "gene_symbol"] == "STAT1"
        assert pd.isna(annotated.loc["ENSG00000999999.1", "gene_symbol"])
        assert annotated.loc["ENSG00000187608.5", "ensembl_gene_id"] == "ENSG00000187608"

    def test_versioned_lookup_ids(self, results_table):
        lookup = pd.DataFrame(
            {
                "ensembl_gene_id": [
                    "ENSG00000187608.9",
                    "ENSG00000115415.18",
                    "ENSG00000115415.20",
                ],
                "gene_symbol": ["ISG15", "STAT1", "STAT1-alt"],
            }
        )
        annotated = annotate_results(results_table, lookup)

        assert annotated.loc["ENSG00000187608.5", "gene_symbol"] == "ISG15"
        # first occurrence wins across versions of the same gene
        assert annotated.loc["ENSG00000115415.20", "gene_symbol"] == "STAT1"
        assert lookup.loc[0, "ensembl_gene_id"] == "ENSG00000187608.9"

    def test_no_match_warns(self, results_table, caplog):
        lookup = pd.DataFrame({"ensembl_gene_id": ["ENSG00000000001"], "gene_symbol": ["X"]})

        with caplog.at_level(logging.WARNING, logger="monoflow"):
            annotated = annotate_results(results_table, lookup)

        assert annotated["gene_symbol"].isna().all()
        assert "No gene identifier matched" in caplog.text

    def test_input_not_modified(self, results_table):
        before = results_table.copy()
        annotate_results(
            results_table,
            pd.DataFrame({"ensembl_gene_id": ["ENSG00000187608"], "gene_symbol": ["ISG15"]}),
        )
        pd.testing.assert_frame_equal(results_table, before)


class TestReadLookupFile:

    def test_tsv_and_csv(self, tmp_path):
        lookup = pd.DataFrame({"ensembl_gene_id": ["E1"], "gene_symbol": ["A"]})
        lookup.to_csv(tmp_path / "l.tsv", sep="\t", index=False)
        lookup.to_csv(tmp_path / "l.csv", index=False)

        assert read_lookup_file(tmp_path / "l.tsv")["gene_symbol"].tolist() == ["A"]
        assert read_lookup_file(tmp_path / "l.csv")["gene_symbol"].tolist() == ["A"]

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "l.tsv"
        pd.DataFrame({"id": ["E1"], "name": ["A"]}).to_csv(path, sep="\t", index=False)

        with pytest.raises(AnnotationError, match="lacks columns"):
            read_lookup_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(AnnotationError):
            read_lookup_file(tmp_path / "absent.tsv")


class TestBiomartClient:

    def test_parses_response_in_order(self):
        session = _session(BIOMART_TSV)
        mapping = BiomartClient(session=session).fetch_mapping()

        assert list(mapping.columns) == [
            "ensembl_gene_id",
            "gene_symbol",
            "gene_biotype",
            "description",
        ]
        assert mapping["gene_symbol"].tolist()[:3] == ["ISG15", "STAT1", "STAT1-alt"]
        assert pd.isna(mapping.loc[3, "gene_symbol"])

        args, kwargs = session.post.call_args
        assert "hsapiens_gene_ensembl" in kwargs["data"]["query"]

    def test_request_failure(self):
        session = _session(post_error=requests.ConnectionError("unreachable"))
        with pytest.raises(AnnotationError, match="request failed"):
            BiomartClient(session=session).fetch_mapping()

    def test_http_error(self):
        session = _session(status_error=requests.HTTPError("503"))
        with pytest.raises(AnnotationError):
            BiomartClient(session=session).fetch_mapping()

    @pytest.mark.parametrize("text", ["", "Query ERROR: caught BioMart::Exception"])
    def test_empty_or_error_response(self, text):
        with pytest.raises(AnnotationError):
            BiomartClient(session=_session(text)).fetch_mapping()


class TestSymbolLookup:

    def test_lookup_file_takes_precedence(self, tmp_path, results_table):
        path = tmp_path / "symbols.tsv"
        pd.DataFrame(
            {"ensembl_gene_id": ["ENSG00000187608"], "gene_symbol": ["ISG15"]}
        ).to_csv(path, sep="\t", index=False)

        session = _session(BIOMART_TSV)
        config = Config(output_dir=str(tmp_path), annotation={"lookup_file": str(path)})
        annotated = SymbolLookup(config, BiomartClient(session=session)).annotate(
            results_table
        )

        assert annotated["gene_symbol"].notna().sum() == 1
        session.post.assert_not_called()

    def test_biomart_result_cached(self, tmp_path, results_table):
        session = _session(BIOMART_TSV)
        config = Config(
            output_dir=str(tmp_path), annotation={"cache_dir": str(tmp_path / "cache")}
        )

        first = SymbolLookup(config, BiomartClient(session=session)).annotate(results_table)
        second = SymbolLookup(config, BiomartClient(session=session)).annotate(results_table)

        assert session.post.call_count == 1
        pd.testing.assert_series_equal(
            first["gene_symbol"], second["gene_symbol"], check_dtype=False
        )
        assert second.loc["ENSG00000115415.20", "gene_symbol"] == "STAT1"

    def test_unavailable_source_raises(self, tmp_path):
        session = _session(post_error=requests.Timeout("slow"))
        config = Config(output_dir=str(tmp_path))

        with pytest.raises(AnnotationError):
            SymbolLookup(config, BiomartClient(session=session)).resolve()


class TestAnnotationCache:

    def test_save_load_clear(self, tmp_path):
        cache = AnnotationCache(tmp_path / "cache")
        lookup = pd.DataFrame({"ensembl_gene_id": ["E1"], "gene_symbol": ["A"]})
        params = {"url": "u", "dataset": "d"}

        assert cache.load_lookup("d", params) is None

        cache.save_lookup(lookup, "d", params)
        pd.testing.assert_frame_equal(cache.load_lookup("d", params), lookup)
        assert cache.load_lookup("d", {"url": "other", "dataset": "d"}) is None

        assert cache.clear_cache() == 1
        assert cache.load_lookup("d", params) is None
