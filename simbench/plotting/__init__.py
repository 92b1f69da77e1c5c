"""Plotting API for benchmark reports."""

from simbench.plotting.comparison import (
    plot_difference_heatmap,
    plot_gof_summary,
    plot_joint_property,
    plot_property_distributions,
)
from simbench.plotting.style import (
    DEFAULT_STYLE,
    PlotStyle,
    apply_style,
    choose_text_color,
    finalize_fig,
    sanitize_label,
    version_colors,
)

__all__ = [
    "PlotStyle",
    "DEFAULT_STYLE",
    "apply_style",
    "choose_text_color",
    "finalize_fig",
    "sanitize_label",
    "version_colors",
    "plot_property_distributions",
    "plot_joint_property",
    "plot_difference_heatmap",
    "plot_gof_summary",
]
