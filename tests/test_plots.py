import pandas as pd

from src.evaluation.metrics import ConfusionMatrix
from src.planning.sample_size import sample_size_table
from src.visualization import plots

FEATURES = ["LB", "AC", "FM", "UC", "DL", "DS", "DP", "ASTV", "ALTV"]


def test_descriptive_figures_are_written(tmp_path, labelled_ctg):
    heatmap = plots.plot_correlation_heatmap(labelled_ctg[FEATURES], tmp_path / "figs" / "heatmap.png")
    bars = plots.plot_class_balance(labelled_ctg["abnormal"], tmp_path / "figs" / "balance.png")
    assert heatmap.exists() and heatmap.stat().st_size > 0
    assert bars.exists()


def test_confusion_matrix_and_importance_figures(tmp_path):
    cm = ConfusionMatrix(tp=10, fp=3, tn=40, fn=2)
    assert plots.plot_confusion_matrix(cm, tmp_path / "cm.png").exists()

    importance = pd.DataFrame(
        {"mean_decrease_gini": [0.5, 0.3, 0.2], "mean_decrease_accuracy": [0.1, 0.05, 0.0]},
        index=pd.Index(["ASTV", "ALTV", "LB"], name="feature"),
    )
    assert plots.plot_variable_importance(importance, tmp_path / "imp.png").exists()


def test_oob_and_sample_size_line_charts(tmp_path):
    grid = pd.DataFrame(
        {
            "mtry": [2, 2, 3, 3, 4],
            "node_size": [1, 2, 1, 2, 1],
            "oob_error": [0.10, 0.12, 0.09, 0.11, float("nan")],
            "status": ["ok", "ok", "ok", "ok", "failed"],
        }
    )
    assert plots.plot_oob_by_mtry(grid, tmp_path / "oob.png").exists()

    table = sample_size_table([3, 6, 9], [0.1, 0.2], 0.22)
    assert plots.plot_sample_size(table, tmp_path / "n.png").exists()
