"""Centralized plotting defaults for benchmark figures."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt


@dataclass(frozen=True)
class PlotStyle:
    dpi: int = 150
    fig_small: tuple[float, float] = (6.0, 5.0)
    fig_wide: tuple[float, float] = (9.0, 4.5)
    fs_suptitle: int = 14
    fs_title: int = 12
    fs_label: int = 11
    fs_tick: int = 9
    fs_legend: int = 9
    fs_annot: int = 9
    line_width: float = 1.5
    marker_size: float = 3.0
    alpha_points: float = 0.5
    cmap_heat: str = "viridis"
    reference_color: str = "#444444"
    palette: str = "tab10"


DEFAULT_STYLE = PlotStyle()


def apply_style(style: PlotStyle = DEFAULT_STYLE) -> None:
    plt.rcParams.update(
        {
            "figure.dpi": style.dpi,
            "savefig.dpi": style.dpi,
            "font.size": style.fs_tick,
            "axes.titlesize": style.fs_title,
            "axes.labelsize": style.fs_label,
            "xtick.labelsize": style.fs_tick,
            "ytick.labelsize": style.fs_tick,
            "legend.fontsize": style.fs_legend,
            "lines.linewidth": style.line_width,
            "lines.markersize": style.marker_size,
            "axes.grid": False,
            "axes.spines.top": False,
            "axes.spines.right": False,
        }
    )


def version_colors(labels: Sequence[str], reference: str, style: PlotStyle = DEFAULT_STYLE) -> dict[str, object]:
    """Fixed colour per version label; the reference is always grey."""
    cmap = plt.get_cmap(style.palette)
    out: dict[str, object] = {}
    i = 0
    for label in labels:
        if label == reference:
            out[label] = style.reference_color
        else:
            out[label] = cmap(i % cmap.N)
            i += 1
    return out


def choose_text_color(rgba: Sequence[float]) -> str:
    r, g, b = float(rgba[0]), float(rgba[1]), float(rgba[2])
    luminance = 0.2126 * r + 0.7152 * g + 0.0722 * b
    return "black" if luminance > 0.55 else "white"


def finalize_fig(fig: plt.Figure, outpath: str | Path, style: PlotStyle = DEFAULT_STYLE) -> Path:
    out = Path(outpath)
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out, dpi=style.dpi, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    return out


def sanitize_label(label: str, max_len: int = 40) -> str:
    """Create deterministic filesystem-safe stems for labels."""
    clean = "".join(ch if (ch.isalnum() or ch == "_") else "_" for ch in str(label))
    clean = clean.strip("_") or "item"
    return clean[:max_len]
