"""Exceptions raised for invalid search input.

"No path" is never an error: searches return ``None`` for that. These are only
raised before a search starts, when the query itself cannot be answered.
"""
from __future__ import annotations


class GridError(ValueError):
    """Base class for rejected grids and queries."""


class MalformedGridError(GridError):
    pass


class OutOfBoundsError(GridError):
    pass


class BlockedCellError(GridError):
    pass


class InvalidParameterError(GridError):
    pass
