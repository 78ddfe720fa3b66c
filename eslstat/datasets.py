"""Readers for the vowel, bone-density, and ozone tables.

Each loader parses a delimited text file with pandas, coerces every used
column to float, and validates the row count. A single malformed value
fails the whole load so that no statistic is computed from a silently
truncated table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from eslstat.core.exceptions import InsufficientDataError

if TYPE_CHECKING:
    from collections.abc import Sequence

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "ClassificationData",
    "RegressionData",
    "load_bone",
    "load_ozone",
    "load_vowel",
    "read_table",
]

VOWEL_N_CLASSES: int = 11
OZONE_PREDICTORS: tuple[str, ...] = ("radiation", "temperature", "wind")


@dataclass(frozen=True)
class ClassificationData:
    """Feature matrix plus integer class labels, row-aligned."""

    features: pd.DataFrame
    labels: pd.Series

    def __post_init__(self) -> None:
        if len(self.features) != len(self.labels):
            msg = f"{len(self.features)} feature rows but {len(self.labels)} labels"
            raise ValueError(msg)

    @property
    def n_obs(self) -> int:
        return len(self.labels)

    @property
    def classes(self) -> np.ndarray:
        return np.unique(self.labels.to_numpy())


@dataclass(frozen=True)
class RegressionData:
    """Single predictor and scalar response, row-aligned."""

    x: pd.Series
    y: pd.Series

    def __post_init__(self) -> None:
        if len(self.x) != len(self.y):
            msg = f"{len(self.x)} predictor rows but {len(self.y)} responses"
            raise ValueError(msg)

    @property
    def n_obs(self) -> int:
        return len(self.y)


def _detect_sep(p: Path) -> str:
    with p.open(encoding="utf-8") as fh:
        header = fh.readline()
    if "," in header:
        return ","
    if "\t" in header:
        return "\t"
    return r"\s+"


def read_table(path: str | Path, *, sep: str | None = None) -> pd.DataFrame:
    """Read a delimited table; ``sep=None`` picks comma, tab, or whitespace from the header."""
    p = Path(str(path))
    if not p.exists():
        raise FileNotFoundError(str(p))
    delim = _detect_sep(p) if sep is None else sep
    df = pd.read_csv(p, sep=delim, engine="python" if delim == r"\s+" else "c")
    df.columns = [str(c).strip() for c in df.columns]
    if "row.names" in df.columns:
        df = df.set_index("row.names")
    if df.empty:
        msg = f"{p} contains no data rows"
        raise InsufficientDataError(msg)
    _LOGGER.debug("read_table: %s -> %d rows x %d cols", p, len(df), df.shape[1])
    return df


def _numeric(df: pd.DataFrame, columns: Sequence[str], source: str) -> pd.DataFrame:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        msg = f"{source}: missing columns {missing}; found {list(df.columns)}"
        raise ValueError(msg)
    out = {}
    for c in columns:
        col = pd.to_numeric(df[c], errors="coerce")
        bad = col.isna() | ~np.isfinite(col.to_numpy(dtype=np.float64, na_value=np.nan))
        if bad.any():
            first = df.index[bad.to_numpy()][0]
            msg = f"{source}: column {c!r} has a malformed value {df.loc[first, c]!r} at row {first!r}"
            raise ValueError(msg)
        out[c] = col.astype(np.float64)
    return pd.DataFrame(out, index=df.index)


def load_vowel(
    path: str | Path,
    *,
    sep: str | None = None,
    n_classes: int | None = VOWEL_N_CLASSES,
) -> ClassificationData:
    """Vowel table: label column ``y`` (else the first column), features after it.

    Labels must be integers in ``1..n_classes`` (pass ``None`` to skip the
    range check).
    """
    df = read_table(path, sep=sep)
    label_col = "y" if "y" in df.columns else df.columns[0]
    feature_cols = [c for c in df.columns if c != label_col]
    if not feature_cols:
        msg = f"{path}: no feature columns after the label column"
        raise ValueError(msg)
    num = _numeric(df, [label_col, *feature_cols], str(path))
    raw = num[label_col].to_numpy()
    if not np.all(raw == np.round(raw)):
        msg = f"{path}: class labels must be integers"
        raise ValueError(msg)
    labels = pd.Series(raw.astype(np.int64), index=num.index, name=label_col)
    if n_classes is not None and (labels.min() < 1 or labels.max() > int(n_classes)):
        msg = f"{path}: class labels must lie in 1..{n_classes}"
        raise ValueError(msg)
    return ClassificationData(features=num[feature_cols], labels=labels)


def load_bone(
    path: str | Path,
    *,
    sep: str | None = None,
    x: str = "age",
    y: str = "spnbmd",
) -> RegressionData:
    """Bone mineral density table (relative change ``spnbmd`` against ``age``)."""
    df = read_table(path, sep=sep)
    num = _numeric(df, [x, y], str(path))
    return RegressionData(x=num[x], y=num[y])


def load_ozone(
    path: str | Path,
    *,
    sep: str | None = None,
    x: str = "temperature",
    y: str = "ozone",
) -> RegressionData:
    """Ozone table; ``x`` is one of radiation, temperature, wind."""
    if x not in OZONE_PREDICTORS:
        msg = f"ozone predictor must be one of {OZONE_PREDICTORS}, got {x!r}"
        raise ValueError(msg)
    df = read_table(path, sep=sep)
    num = _numeric(df, [x, y], str(path))
    return RegressionData(x=num[x], y=num[y])
