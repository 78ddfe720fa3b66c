# eslstat/utils/__init__.py
"""Basis expansions and feature augmentation."""
from .basis import (
    SplineBasis,
    SplineFamily,
    interior_knots,
    knots_from_quantiles,
    knots_from_unique,
    natural_spline_basis,
    truncated_power_basis,
)
from .features import augment_with_products, product_pairs

__all__ = [
    "SplineBasis",
    "SplineFamily",
    "augment_with_products",
    "interior_knots",
    "knots_from_quantiles",
    "knots_from_unique",
    "natural_spline_basis",
    "product_pairs",
    "truncated_power_basis",
]
