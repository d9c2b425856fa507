"""
Error definitions and diagnostics for the cancellation preprocessor.
"""
from enum import Enum
from dataclasses import dataclass
from typing import List


class PreprocessError(Exception):
    """Base class for fatal preprocessing errors. Nothing is written when raised."""


class UnrecognizedDialectError(PreprocessError):
    """No known slicer signature was found in the header prefix."""

    def __init__(self, lines_checked: int):
        super().__init__(
            f"The slicer that created this G-code file could not be identified "
            f"(checked {lines_checked} lines)"
        )
        self.lines_checked = lines_checked


class UnseekableInputError(PreprocessError):
    """The input cannot be read a second time."""

    def __init__(self):
        super().__init__(
            "Input stream is not seekable and no opener was supplied; "
            "a second pass over the file is not possible"
        )


class LayerFilterError(PreprocessError):
    """A layer filter definition could not be parsed."""


class DiagnosticCode(Enum):
    MALFORMED_MOTION_LINE = "malformed_motion_line"
    IMPLICIT_OBJECT_CLOSE = "implicit_object_close"
    NAME_COLLISION = "name_collision"
    INVALID_OBJECT_NAME = "invalid_object_name"
    NO_OBJECTS_FOUND = "no_objects_found"


class DiagnosticSeverity(Enum):
    INFO = "info"
    WARNING = "warning"


@dataclass
class Diagnostic:
    """A recoverable anomaly found while processing, with its source line."""
    line_number: int
    message: str
    code: DiagnosticCode
    severity: DiagnosticSeverity = DiagnosticSeverity.WARNING

    def __str__(self):
        return f"Line {self.line_number}: {self.message}"


class DiagnosticCollector:
    """Collects recoverable anomalies during a run."""

    def __init__(self):
        self.diagnostics: List[Diagnostic] = []

    def add(self, line_number: int, message: str, code: DiagnosticCode,
            severity: DiagnosticSeverity = DiagnosticSeverity.WARNING):
        """Add a diagnostic to the collection."""
        self.diagnostics.append(Diagnostic(line_number, message, code, severity))

    def get_by_code(self, code: DiagnosticCode) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.code == code]

    def clear(self):
        """Clear all diagnostics."""
        self.diagnostics.clear()

    def get_all(self) -> List[Diagnostic]:
        """Get all diagnostics sorted by line number."""
        return sorted(self.diagnostics, key=lambda d: d.line_number)
