"""Feature augmentation with pairwise products."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from eslstat.core import linalg as la
from eslstat.core.exceptions import DimensionMismatchError

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = ["augment_with_products", "product_pairs"]


def product_pairs(indices: Sequence[int]) -> list[tuple[int, int]]:
    """Unordered pairs (i, j) with i <= j by position in ``indices``."""
    idx = [int(i) for i in indices]
    return [(idx[a], idx[b]) for a in range(len(idx)) for b in range(a, len(idx))]


def augment_with_products(indices: Sequence[int], X):
    """Append x_i * x_j for every unordered pair drawn from ``indices``.

    Indices are 1-based feature positions, matching the ``x.1 .. x.p``
    column naming of the vowel data. Pairs include each index with itself,
    so ``n`` indices add ``n (n + 1) / 2`` columns. The original columns and
    row order are kept.

    A DataFrame input returns a DataFrame with new columns named
    ``"<col_i>*<col_j>"``; anything else returns an ndarray.
    """
    is_frame = isinstance(X, pd.DataFrame)
    Xd = la.as_2d(X)
    p = Xd.shape[1]
    pairs = product_pairs(indices)
    for i, j in pairs:
        if not (1 <= i <= p and 1 <= j <= p):
            msg = f"feature index pair ({i}, {j}) outside 1..{p}"
            raise DimensionMismatchError(msg)
    if not pairs:
        return X.copy() if is_frame else Xd.copy()
    new = np.column_stack([Xd[:, i - 1] * Xd[:, j - 1] for i, j in pairs])
    if not is_frame:
        return np.hstack([Xd, new])
    names = [f"{X.columns[i - 1]}*{X.columns[j - 1]}" for i, j in pairs]
    extra = pd.DataFrame(new, index=X.index, columns=names)
    return pd.concat([X, extra], axis=1)
