"""
Grammar Police - macOS menu bar app that corrects or translates the selected text
while keeping protected words untouched.
"""

__version__ = "0.1.0-alpha"
__author__ = "Grammar Police contributors"
__description__ = "A macOS menu bar app that fixes grammar in any text field with a language model"

# Import core functionality that doesn't depend on macOS-specific modules
from .masking import MaskingResult, mask, unmask  # pylint: disable=import-error
from .orchestrator import OperationOrchestrator
from .words import ProtectedWord, ProtectedWordStore

# Conditionally import macOS-specific app functionality
try:
    from .app import GrammarPolice  # pylint: disable=import-error

    __all__ = [
        "GrammarPolice",
        "MaskingResult",
        "OperationOrchestrator",
        "ProtectedWord",
        "ProtectedWordStore",
        "mask",
        "unmask",
    ]
except ImportError:
    # rumps/pyobjc not available (e.g., during unit tests on non-macOS or without macOS deps)
    GrammarPolice = None  # type: ignore
    __all__ = ["MaskingResult", "OperationOrchestrator", "ProtectedWord", "ProtectedWordStore", "mask", "unmask"]
