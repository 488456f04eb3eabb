"""Exceptions raised by the lineage pipeline.

Only fatal conditions are exceptions. Duplicate declarations and unresolved
references are recorded as diagnostics on the graph instead (see models.py).
"""
from typing import Optional

from .models import Span


class LineageError(Exception):
    """Base class for all lineage analysis failures."""


class MalformedTree(LineageError):
    """The input tree violates a structural expectation of the scope builder.

    Aborts analysis of the current tree. Carries the span of the offending
    node so the caller can point at the source.
    """

    def __init__(self, message: str, span: Optional[Span] = None):
        self.span = span
        if span is not None:
            message = f"{message} (line {span.line}, column {span.column})"
        super().__init__(message)


class InconsistentGraph(LineageError):
    """An edge points at a declaration or scope the graph does not contain.

    Signals a bug in the builder or resolver, never a problem with the input.
    """
