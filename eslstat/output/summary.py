"""Tabular summaries for discriminant and spline fits.

Tables are built as DataFrames and rendered with ``tabulate`` as text or
LaTeX, in the same layout for every estimator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

import numpy as np
import pandas as pd
from tabulate import tabulate

if TYPE_CHECKING:
    from collections.abc import Mapping

    from eslstat.estimators.base import EstimationResult
    from eslstat.estimators.discriminant import ErrorRates

__all__ = [
    "error_rate_table",
    "format_table",
    "model_table",
    "spline_summary",
]


def format_table(
    frame: pd.DataFrame,
    *,
    output: str = "text",
    floatfmt: str = ".4f",
    latex_booktabs: bool = True,
) -> str:
    """Render a DataFrame with ``tabulate`` ("text" or "latex")."""
    if output not in {"text", "latex"}:
        raise ValueError("output must be either 'text' or 'latex'.")
    headers = [str(frame.index.name or "")] + [str(c) for c in frame.columns]
    rows = [[str(idx), *row] for idx, row in zip(frame.index, frame.itertuples(index=False))]
    if output == "latex":
        tablefmt = "latex_booktabs" if latex_booktabs else "latex"
        return cast(
            "str",
            tabulate(rows, headers=headers, floatfmt=floatfmt, stralign="center", tablefmt=tablefmt),
        )
    return cast("str", tabulate(rows, headers=headers, floatfmt=floatfmt, stralign="center"))


def error_rate_table(rates: Mapping[str, ErrorRates]) -> pd.DataFrame:
    """Per-class error rates side by side, with an "overall" last row.

    Columns are model labels; an extra ``n`` column carries the per-class
    counts of the first model.
    """
    if not rates:
        raise ValueError("rates must contain at least one model")
    first = next(iter(rates.values()))
    cols: dict[str, Any] = {"n": first.counts.astype(np.int64)}
    for name, er in rates.items():
        cols[str(name)] = er.per_class
    frame = pd.DataFrame(cols)
    overall = {"n": int(first.counts.sum())}
    overall.update({str(name): er.overall for name, er in rates.items()})
    frame.loc["overall"] = pd.Series(overall)
    frame.index.name = "class"
    frame["n"] = frame["n"].astype(np.int64)
    return frame


def spline_summary(result: EstimationResult) -> pd.DataFrame:
    """Coefficient table (estimate, se) for a spline fit result."""
    se = result.se if result.se is not None else pd.Series(np.nan, index=result.params.index)
    frame = pd.DataFrame({"estimate": result.params, "se": se})
    frame.index.name = "coef"
    return frame


def model_table(
    results: list[EstimationResult],
    model_names: list[str] | None = None,
    *,
    output: str = "text",
) -> str:
    """Side-by-side ``model_info`` entries (estimator, df, lambda, ...)."""
    if model_names is None:
        model_names = [f"({i + 1})" for i in range(len(results))]
    if len(model_names) != len(results):
        raise ValueError("model_names must match the number of results")
    keys: list[str] = []
    for res in results:
        keys.extend(k for k in res.model_info if k not in keys)
    keys.append("N")
    body = {
        name: [res.model_info.get(k, "") if k != "N" else res.n_obs for k in keys]
        for name, res in zip(model_names, results)
    }
    frame = pd.DataFrame(body, index=pd.Index(keys, name=""))
    return format_table(frame, output=output, floatfmt=".4g")
