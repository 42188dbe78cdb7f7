"""
Exception types for Grammar Police.

Expected outcomes (nothing selected, secure field, model timeout) are returned as
values by the components that produce them. Exceptions are reserved for faults.
"""


class GrammarPoliceError(Exception):
    """Base class for Grammar Police faults."""


class ClipboardError(GrammarPoliceError):
    """The system clipboard could not be read or written."""


class ReplacementError(GrammarPoliceError):
    """Neither the direct write nor the clipboard paste could be attempted."""
