"""Tests for the monoflow command line."""
import logging

import pandas as pd
import pytest
import yaml
from click.testing import CliRunner

from monoflow.cli import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    # the CLI attaches handlers to the runner's temporary stdout
    yield
    logging.getLogger().handlers.clear()


def test_info(runner):
    result = runner.invoke(main, ["info"])

    assert result.exit_code == 0
    assert "MonoFlow v" in result.output
    assert "pydeseq2" in result.output


def test_init_and_validate_config(runner, tmp_path):
    path = tmp_path / "config.yaml"

    result = runner.invoke(main, ["init-config", str(path)])
    assert result.exit_code == 0
    assert path.exists()

    written = yaml.safe_load(path.read_text())
    assert written["differential"]["comparison"]["name"] == "SLE_vs_Ctrl"

    written["output_dir"] = str(tmp_path / "results")
    path.write_text(yaml.safe_dump(written, sort_keys=False))

    result = runner.invoke(main, ["validate-config", str(path)])
    assert result.exit_code == 0
    assert "Configuration is valid" in result.output


def test_init_config_json(runner, tmp_path):
    result = runner.invoke(main, ["init-config", str(tmp_path / "config"), "--format", "json"])

    assert result.exit_code == 0
    assert (tmp_path / "config.json").exists()


def test_validate_config_reports_issues(runner, tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "output_dir": str(tmp_path / "results"),
                "counts_file": str(tmp_path / "absent.txt"),
            }
        )
    )

    result = runner.invoke(main, ["validate-config", str(path)])

    assert result.exit_code == 1
    assert "Counts file" in result.output


def test_load(runner, featurecounts_file, tmp_path):
    out = tmp_path / "results"
    result = runner.invoke(main, ["load", str(featurecounts_file), "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert "200 genes x 6 samples" in result.output
    assert "Ctrl: 3 samples" in result.output
    assert (out / "counts" / "count_matrix.tsv").exists()


def test_differential_then_annotate(runner, featurecounts_file, lookup_file, tmp_path):
    out = tmp_path / "results"

    result = runner.invoke(
        main, ["differential", "--counts", str(featurecounts_file), "-o", str(out)]
    )
    assert result.exit_code == 0, result.output
    assert "Genes tested" in result.output

    results_file = out / "differential" / "SLE_vs_Ctrl_results.tsv"
    assert results_file.exists()

    annotated_file = tmp_path / "annotated.tsv"
    result = runner.invoke(
        main,
        [
            "annotate",
            str(results_file),
            "--lookup",
            str(lookup_file),
            "-o",
            str(annotated_file),
        ],
    )
    assert result.exit_code == 0, result.output

    annotated = pd.read_csv(annotated_file, sep="\t", index_col=0)
    assert annotated["gene_symbol"].notna().sum() == 150
    assert annotated.index.name == "gene_id"


def test_run_with_config(runner, featurecounts_file, lookup_file, tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.safe_dump(
            {
                "output_dir": str(tmp_path / "results"),
                "counts_file": str(featurecounts_file),
                "annotation": {"lookup_file": str(lookup_file)},
                "visualization": {"dpi": 50},
            }
        )
    )

    result = runner.invoke(
        main,
        ["--config", str(config_path), "run", "--steps", "load,differential_analysis"],
    )

    assert result.exit_code == 0, result.output
    assert "SLE_vs_Ctrl" in result.output
    assert (tmp_path / "results" / "monoflow_summary.tsv").exists()


def test_run_without_counts_fails(runner, tmp_path):
    result = runner.invoke(main, ["run", "-o", str(tmp_path / "results")])

    assert result.exit_code == 1
    assert "No counts file" in result.output
