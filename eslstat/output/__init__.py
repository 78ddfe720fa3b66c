# eslstat/output/__init__.py
"""Output and visualization module for classifier and spline results."""
from .plots import band_plot, error_rate_plot, fit_plot
from .summary import error_rate_table, format_table, model_table, spline_summary

__all__ = [
    "band_plot",
    "error_rate_plot",
    "error_rate_table",
    "fit_plot",
    "format_table",
    "model_table",
    "spline_summary",
]
