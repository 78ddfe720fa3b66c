# eslstat/core/__init__.py
"""Core computational modules for eslstat."""
from . import bootstrap, classstats, exceptions, inference, linalg, penalized

__all__ = ["bootstrap", "classstats", "exceptions", "inference", "linalg", "penalized"]
