"""Tests for sample and result plots."""
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from monoflow.exploration import principal_components, sample_correlation
from monoflow.visualization import (create_correlation_heatmap, create_ma_plot,
                                    create_pca_plot, create_volcano_plot,
                                    save_figure)


@pytest.fixture
def de_results():
    rng = np.random.default_rng(2)
    n = 300
    table = pd.DataFrame(
        {
            "base_mean": rng.uniform(1, 5000, n),
            "log2_fold_change": rng.normal(0, 1.5, n),
            "p_value": rng.uniform(0, 1, n),
        },
        index=[f"ENSG{i:011d}.1" for i in range(n)],
    )
    table.iloc[:15, table.columns.get_loc("p_value")] = 1e-12
    table.iloc[0, table.columns.get_loc("p_value")] = 0.0
    table.iloc[1, table.columns.get_loc("p_value")] = 1e-20
    table["adjusted_p_value"] = np.minimum(table["p_value"] * 10, 1.0)
    table.iloc[-5:, table.columns.get_loc("adjusted_p_value")] = np.nan
    table.iloc[:3, table.columns.get_loc("log2_fold_change")] = [9.0, -9.0, 3.0]
    table["gene_symbol"] = [f"SYM{i}" if i % 2 else np.nan for i in range(n)]
    return table


@pytest.fixture
def log_matrix():
    rng = np.random.default_rng(3)
    data = rng.normal(8, 0.3, size=(80, 6))
    data[:10, 3:] += 2
    return pd.DataFrame(
        data, columns=["Ctrl_01", "Ctrl_02", "Ctrl_03", "SLE_01", "SLE_02", "SLE_03"]
    )


class TestResultPlots:

    def test_ma_plot_written(self, de_results, tmp_path):
        before = de_results.copy()
        path = create_ma_plot(
            de_results, ylim=(-4, 4), output_file=tmp_path / "ma.png", dpi=50
        )

        assert path == tmp_path / "ma.png"
        assert path.exists()
        pd.testing.assert_frame_equal(de_results, before)

    def test_ma_plot_returns_figure(self, de_results):
        fig = create_ma_plot(de_results)
        assert isinstance(fig, plt.Figure)
        assert fig.axes[0].get_xscale() == "log"
        plt.close(fig)

    def test_volcano_plot_written(self, de_results, tmp_path):
        before = de_results.copy()
        path = create_volcano_plot(
            de_results,
            xlim=(-10, 10),
            output_file=tmp_path / "volcano.png",
            dpi=50,
            formats=["png", "pdf"],
        )

        assert path.exists()
        assert (tmp_path / "volcano.pdf").exists()
        pd.testing.assert_frame_equal(de_results, before)

    def test_volcano_labels_use_symbol_or_identifier(self, de_results):
        fig = create_volcano_plot(de_results, label_top=3)
        labels = {text.get_text() for text in fig.axes[0].texts}
        plt.close(fig)

        assert "SYM1" in labels
        assert "ENSG00000000000.1" in labels


class TestSamplePlots:

    def test_correlation_heatmap(self, log_matrix, sample_metadata, tmp_path):
        correlation = sample_correlation(log_matrix)
        path = create_correlation_heatmap(
            correlation, sample_metadata, output_file=tmp_path / "heatmap.png", dpi=50
        )
        assert path.exists()

    def test_pca_plot(self, log_matrix, sample_metadata, tmp_path):
        pca = principal_components(log_matrix, sample_metadata)
        path = create_pca_plot(pca, output_file=tmp_path / "pca.png", dpi=50)
        assert path.exists()


def test_save_figure_closes_and_creates_directories(tmp_path):
    fig, ax = plt.subplots()
    ax.plot([0, 1], [0, 1])

    written = save_figure(fig, tmp_path / "nested" / "line.png", dpi=50, formats=["png", "svg"])

    assert [p.suffix for p in written] == [".png", ".svg"]
    assert all(p.exists() for p in written)
    assert not plt.fignum_exists(fig.number)
