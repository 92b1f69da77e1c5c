"""Figure factories for version comparisons, difference summaries and fit summaries."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from simbench.core.types import DISTRIBUTIONS, ComparisonTable, DifferenceRecord, JointComparisonTable
from simbench.plotting.style import (
    DEFAULT_STYLE,
    PlotStyle,
    choose_text_color,
    finalize_fig,
    version_colors,
)
from simbench.summary import difference_matrix

_LOG_PROPERTIES = {"Mean", "Variance", "LibSize"}
_AXIS_LABELS = {
    "mean": "log1p(mean)",
    "variance": "log1p(variance)",
    "zeros": "proportion zeros",
    "library_size": "log1p(library size)",
}


def _transform(values: np.ndarray, log: bool) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    return np.log1p(arr) if log else arr


def _render_na(ax: plt.Axes, reason: str, style: PlotStyle) -> None:
    ax.set_xticks([])
    ax.set_yticks([])
    ax.text(0.5, 0.5, f"NA ({reason})", transform=ax.transAxes, ha="center", va="center", fontsize=style.fs_title)


def plot_property_distributions(
    table: ComparisonTable,
    out_png: str | Path,
    *,
    title: str | None = None,
    style: PlotStyle = DEFAULT_STYLE,
) -> Path:
    """Box plot of one scalar property per version, reference first."""
    labels = [table.reference] + [lab for lab in table.labels if lab != table.reference]
    log = table.property in _LOG_PROPERTIES
    data = [_transform(table.vector(lab), log) for lab in labels]
    colors = version_colors(labels, table.reference, style)

    fig, ax = plt.subplots(figsize=style.fig_small)
    if all(d.size == 0 for d in data):
        _render_na(ax, "no finite values", style)
    else:
        bp = ax.boxplot(
            [d if d.size else np.array([np.nan]) for d in data],
            patch_artist=True,
            showfliers=False,
        )
        for patch, lab in zip(bp["boxes"], labels):
            patch.set_facecolor(colors[lab])
            patch.set_alpha(0.8)
        ax.set_xticks(range(1, len(labels) + 1))
        ax.set_xticklabels(labels, rotation=45, ha="right")
        ax.set_ylabel(f"log1p({table.property})" if log else table.property)
    ax.set_title(title or table.property, fontsize=style.fs_title)
    return finalize_fig(fig, out_png, style)


def plot_joint_property(
    table: JointComparisonTable,
    out_png: str | Path,
    *,
    title: str | None = None,
    style: PlotStyle = DEFAULT_STYLE,
) -> Path:
    """Per-gene x vs y scatter, one colour per version."""
    labels = [table.reference] + [lab for lab in table.labels if lab != table.reference]
    colors = version_colors(labels, table.reference, style)
    log_y = table.y_name != "zeros"

    fig, ax = plt.subplots(figsize=style.fig_small)
    n_points = 0
    for lab in labels:
        x, y = table.pairs(lab)
        n_points += int(x.size)
        ax.scatter(
            _transform(x, True),
            _transform(y, log_y),
            s=style.marker_size * 2,
            alpha=style.alpha_points,
            color=colors[lab],
            label=lab,
            rasterized=True,
            linewidths=0.0,
        )
    if n_points == 0:
        _render_na(ax, "no finite pairs", style)
    else:
        ax.set_xlabel(_AXIS_LABELS.get(table.x_name, table.x_name))
        ax.set_ylabel(_AXIS_LABELS.get(table.y_name, table.y_name))
        ax.legend(frameon=False, markerscale=2)
    ax.set_title(title or table.property, fontsize=style.fs_title)
    return finalize_fig(fig, out_png, style)


def plot_difference_heatmap(
    records: Sequence[DifferenceRecord],
    out_png: str | Path,
    *,
    statistic: str = "MAD",
    title: str | None = None,
    style: PlotStyle = DEFAULT_STYLE,
) -> Path:
    """Scaled statistic per model x property with the rank written in each cell."""
    scaled = difference_matrix(records, value="scaled", statistic=statistic)
    ranks = difference_matrix(records, value="rank", statistic=statistic)

    fig, ax = plt.subplots(figsize=style.fig_wide)
    if scaled.empty:
        _render_na(ax, "no records", style)
        return finalize_fig(fig, out_png, style)

    ranks = ranks.reindex(index=scaled.index, columns=scaled.columns)
    values = scaled.to_numpy(dtype=float)
    im = ax.imshow(np.ma.masked_invalid(values), cmap=style.cmap_heat, aspect="auto")
    cmap = im.get_cmap()
    norm = im.norm
    for i in range(values.shape[0]):
        for j in range(values.shape[1]):
            rk = float(ranks.iloc[i, j])
            if not np.isfinite(values[i, j]) or not np.isfinite(rk):
                continue
            color = choose_text_color(cmap(norm(values[i, j])))
            ax.text(j, i, f"{int(rk)}", ha="center", va="center", color=color, fontsize=style.fs_annot)
    ax.set_xticks(range(values.shape[1]))
    ax.set_xticklabels(list(scaled.columns), rotation=45, ha="right")
    ax.set_yticks(range(values.shape[0]))
    ax.set_yticklabels(list(scaled.index))
    fig.colorbar(im, ax=ax, label=f"scaled {statistic}")
    ax.set_title(title or f"Difference from reference ({statistic})", fontsize=style.fs_title)
    return finalize_fig(fig, out_png, style)


def plot_gof_summary(
    frame: pd.DataFrame,
    out_png: str | Path,
    *,
    title: str | None = None,
    style: PlotStyle = DEFAULT_STYLE,
) -> Path:
    """Grouped bars of the accepted-fit proportion per version and distribution."""
    fig, ax = plt.subplots(figsize=style.fig_wide)
    if frame.empty:
        _render_na(ax, "no fits", style)
        return finalize_fig(fig, out_png, style)

    versions = list(dict.fromkeys(frame["Version"]))
    width = 0.8 / max(1, len(versions))
    x = np.arange(len(DISTRIBUTIONS), dtype=float)
    cmap = plt.get_cmap(style.palette)
    for i, version in enumerate(versions):
        sub = frame[frame["Version"] == version].set_index("Distribution")
        heights = [float(sub.loc[d, "PropAccepted"]) if d in sub.index else np.nan for d in DISTRIBUTIONS]
        ax.bar(x + i * width - 0.4 + width / 2, heights, width=width, label=version, color=cmap(i % cmap.N))
    ax.set_xticks(x)
    ax.set_xticklabels(DISTRIBUTIONS)
    ax.set_ylim(0.0, 1.0)
    ax.set_ylabel("proportion of genes accepted")
    ax.legend(frameon=False, ncol=min(4, len(versions)))
    ax.set_title(title or "Goodness of fit", fontsize=style.fs_title)
    return finalize_fig(fig, out_png, style)
