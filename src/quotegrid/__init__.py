"""QuoteGrid: pagination-aware quote fetching for large virtual grids."""

from __future__ import annotations

import warnings
from importlib.metadata import PackageNotFoundError, version

_UNKNOWN_VERSION = "0.0.0+unknown"

try:
    __version__ = version("quotegrid")
except PackageNotFoundError:
    # src/ on sys.path without `pip install`, e.g. the stdio subprocess tests
    warnings.warn(
        f"quotegrid is not installed; reporting version {_UNKNOWN_VERSION!r}.",
        RuntimeWarning,
        stacklevel=2,
    )
    __version__ = _UNKNOWN_VERSION
