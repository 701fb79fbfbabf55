"""Console tables and the explanation bar chart."""
from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.table import Table

from components.records import Explanation, Leaderboard, PerformanceReport

# One recording console for the whole run, saved to console.log by the CLI
console = Console(highlight=False, record=True)
logger = logging.getLogger(__name__)


def render_leaderboard(leaderboard: Leaderboard, limit: int | None = 10) -> Table:
    table = Table(title=f"Leaderboard (by {leaderboard.metric})")
    table.add_column("#", justify="right")
    table.add_column("model_id")
    table.add_column("algorithm")
    table.add_column(leaderboard.metric, justify="right")
    table.add_column("fit_time", justify="right")
    for rank, entry in enumerate(leaderboard[:limit] if limit else leaderboard, start=1):
        table.add_row(
            str(rank),
            entry.model_id,
            entry.handle.algorithm,
            f"{entry.metric_value:.4f}",
            f"{entry.fit_time:.1f}s" if not math.isnan(entry.fit_time) else "-",
        )
    console.print(table)
    return table


def render_report(report: PerformanceReport) -> Table:
    table = Table(title=f"Performance – {report.model_id} ({report.n_rows} rows)")
    table.add_column("metric")
    table.add_column("value", justify="right")
    for name, value in report.items():
        table.add_row(name, f"{value:.4f}")
    console.print(table)
    return table


def render_explanation(explanation: Explanation) -> Table:
    table = Table(
        title=(
            f"Explanation – {explanation.model_id}, case {explanation.case} "
            f"(prediction {explanation.model_prediction:.3f}, fit {explanation.explanation_fit:.2f})"
        )
    )
    table.add_column("feature")
    table.add_column("value", justify="right")
    table.add_column("weight", justify="right")
    table.add_column("range")
    for row in explanation:
        table.add_row(row.feature, str(row.feature_value), f"{row.weight:+.4f}", row.feature_desc)
    table.add_row("(intercept)", "", f"{explanation.intercept:+.4f}", "")
    console.print(table)
    return table


def plot_features(explanations: Sequence[Explanation], path: str | Path) -> Path:
    """Write one horizontal bar chart per explained case to *path*."""
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    n = max(len(explanations), 1)
    bars = max((len(e) for e in explanations), default=1)
    fig, axes = plt.subplots(n, 1, figsize=(8, 0.45 * bars * n + 1), squeeze=False)
    for ax, explanation in zip(axes[:, 0], explanations):
        ordered = explanation.sort_by("abs_weight", descending=False)
        labels = [row.feature_desc for row in ordered]
        weights = [row.weight for row in ordered]
        colors = ["tab:blue" if w >= 0 else "tab:red" for w in weights]
        ax.barh(labels, weights, color=colors)
        ax.axvline(0, color="black", linewidth=0.8)
        ax.set_xlabel("Weight (blue supports, red contradicts)")
        ax.set_title(
            f"Case {explanation.case}: prediction {explanation.model_prediction:.2f}, "
            f"explanation fit {explanation.explanation_fit:.2f}"
        )
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)
    logger.info("Explanation plot saved to %s", path)
    return path


__all__ = ["render_leaderboard", "render_report", "render_explanation", "plot_features"]
