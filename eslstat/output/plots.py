"""Plot utilities.

Draws fitted curves with pointwise or bootstrap bands over the raw data,
and per-class error rates for discriminant classifiers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from collections.abc import Mapping

    from eslstat.estimators.base import EstimationResult
    from eslstat.estimators.discriminant import ErrorRates
else:  # pragma: no cover - used only for typing
    Mapping = dict  # type: ignore[assignment]
    EstimationResult = Any  # type: ignore[assignment,misc]
    ErrorRates = Any  # type: ignore[assignment,misc]

__all__ = [
    "band_plot",
    "error_rate_plot",
    "fit_plot",
]


def _sorted_xy(x, y) -> tuple[np.ndarray, np.ndarray]:
    xd = np.asarray(x, dtype=np.float64).reshape(-1)
    yd = np.asarray(y, dtype=np.float64).reshape(-1)
    if xd.shape != yd.shape:
        msg = f"x and y lengths differ ({xd.size} vs {yd.size})"
        raise ValueError(msg)
    idx = np.argsort(xd, kind="stable")
    return xd[idx], yd[idx]


def fit_plot(  # noqa: PLR0913
    x,
    y,
    curves: Mapping[str, tuple[Any, Any]] | None = None,
    *,
    band: tuple[Any, Any, Any] | None = None,
    band_label: str = "band",
    band_alpha: float = 0.25,
    ax=None,
    title: str = "",
    xlabel: str = "x",
    ylabel: str = "y",
):
    """Scatter the data and overlay fitted curves.

    Parameters
    ----------
    x, y : array-like
        Observations.
    curves : mapping label -> (grid, values), optional
        Curves are sorted by grid before drawing.
    band : (grid, lower, upper), optional
        Shaded interval, e.g. ``fit +/- 2 se`` or a pivotal bootstrap band.

    Returns
    -------
    (fig, ax)

    """
    if ax is None:
        fig, ax = plt.subplots()
    else:
        fig = ax.figure
    ax.scatter(np.asarray(x, dtype=float), np.asarray(y, dtype=float), s=10, color="0.4", label="data")
    if band is not None:
        g, lo, hi = band
        gs, lo_s = _sorted_xy(g, lo)
        _, hi_s = _sorted_xy(g, hi)
        if np.any(lo_s > hi_s):
            raise ValueError("band lower bound exceeds upper bound")
        ax.fill_between(gs, lo_s, hi_s, alpha=band_alpha, label=band_label)
    for label, (g, v) in (curves or {}).items():
        gs, vs = _sorted_xy(g, v)
        ax.plot(gs, vs, linewidth=1.4, label=str(label))
    ax.set_title(title)
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.grid(True, linestyle="--", linewidth=0.5)
    ax.legend(frameon=False)
    return fig, ax


def band_plot(  # noqa: PLR0913
    result: EstimationResult,
    x,
    y,
    *,
    which: str = "pointwise",
    ax=None,
    title: str = "",
):
    """Plot one band table from a spline fit result over the data ``(x, y)``.

    ``which`` names an entry of ``result.bands`` ("pointwise" or
    "bootstrap"). The first column of the band table is the grid.
    """
    bands = result.bands or {}
    if which not in bands:
        msg = f"result has no {which!r} band; available: {sorted(bands)}"
        raise KeyError(msg)
    tbl: pd.DataFrame = bands[which]
    x_col = tbl.columns[0]
    return fit_plot(
        x,
        y,
        {"fit": (tbl[x_col], tbl["fit"])},
        band=(tbl[x_col], tbl["lower"], tbl["upper"]),
        band_label=f"{which} band",
        ax=ax,
        title=title,
        xlabel=str(x_col),
        ylabel="fit",
    )


def error_rate_plot(
    rates: Mapping[str, ErrorRates],
    *,
    ax=None,
    title: str = "Per-class error rate",
):
    """Grouped bars of per-class error rates, one group per class.

    ``rates`` maps a model label (e.g. "QDA", "LDA") to its
    :class:`~eslstat.estimators.discriminant.ErrorRates`.
    """
    if not rates:
        raise ValueError("rates must contain at least one model")
    frame = pd.DataFrame({str(k): v.per_class for k, v in rates.items()})
    if ax is None:
        fig, ax = plt.subplots()
    else:
        fig = ax.figure
    n_models = frame.shape[1]
    pos = np.arange(frame.shape[0], dtype=float)
    width = 0.8 / n_models
    for j, col in enumerate(frame.columns):
        overall = rates[col].overall
        ax.bar(pos + (j - (n_models - 1) / 2) * width, frame[col].to_numpy(), width, label=f"{col} ({overall:.3f})")
    ax.set_xticks(pos)
    ax.set_xticklabels([str(c) for c in frame.index])
    ax.set_ylim(0.0, 1.0)
    ax.set_title(title)
    ax.set_xlabel("class")
    ax.set_ylabel("error rate")
    ax.grid(True, axis="y", linestyle="--", linewidth=0.5)
    ax.legend(frameon=False)
    return fig, ax
