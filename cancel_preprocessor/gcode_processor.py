"""
Main G-code processor interface.
This is the primary entry point for adding cancel-object support to a file.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from itertools import chain, islice
from typing import Any, Callable, Dict, List, Optional, TextIO, Union

from cancel_preprocessor.config.processing_config import ConfigManager, ProcessingConfig
from cancel_preprocessor.core.canonical import is_preprocessed_line
from cancel_preprocessor.core.geometry import ObjectRegistry
from cancel_preprocessor.core.geometry_pass import GeometryPass
from cancel_preprocessor.core.rewrite_pass import RewritePass
from cancel_preprocessor.core.streams import LineSource
from cancel_preprocessor.dialects.base_dialect import Dialect
from cancel_preprocessor.dialects.detector import detect_dialect
from cancel_preprocessor.utils.errors import (
    Diagnostic, DiagnosticCode, DiagnosticCollector, DiagnosticSeverity,
)

logger = logging.getLogger(__name__)


class ProcessStatus(Enum):
    PROCESSED = "processed"
    NO_OBJECTS_FOUND = "no_objects_found"
    ALREADY_PROCESSED = "already_processed"


@dataclass
class ProcessResult:
    """Outcome of one run over a file."""
    status: ProcessStatus
    dialect: Optional[Dialect] = None
    registry: ObjectRegistry = field(default_factory=ObjectRegistry)
    object_count: int = 0
    diagnostics: List[Diagnostic] = field(default_factory=list)
    modified: bool = False          # output differs from input


class GCodeProcessor:
    """
    Main interface for cancel-object preprocessing.

    Reads the input twice: once to detect the slicer and build the object
    registry, once to write the original lines with the definition header and
    object start/end markers inserted. Nothing is written to the output if
    a fatal error is raised.
    """

    def __init__(self, config: Optional[ProcessingConfig] = None):
        self.config = config or ConfigManager.default()
        # Validate up front so a bad filter fails before any I/O
        ConfigManager.validate(self.config)
        self.error_collector = DiagnosticCollector()
        self._last_result: Optional[ProcessResult] = None

    def process(self, source: Union[TextIO, Callable[[], TextIO]], output: TextIO) -> ProcessResult:
        """
        Process G-code from source into output.

        Args:
            source: A seekable text stream, or a callable returning a fresh one
            output: Writable text stream

        Returns:
            ProcessResult describing what was done

        Raises:
            UnseekableInputError: source cannot be read twice
            UnrecognizedDialectError: no slicer signature in the first lines
        """
        self.error_collector.clear()
        lines = LineSource(source)

        with lines.open_pass() as stream:
            prefix = list(islice(stream, self.config.detect_lines))
            if any(is_preprocessed_line(line) for line in prefix):
                logger.info("G-code already supports cancellation")
                dialect = None
                geometry = None
            else:
                dialect = detect_dialect(prefix)
                geometry = GeometryPass(dialect, self.config, self.error_collector)
                geometry.run(chain(prefix, stream))

        if geometry is None or geometry.already_processed:
            lines.copy_to(output)
            return self._finish(ProcessStatus.ALREADY_PROCESSED, dialect)

        registry = geometry.registry
        if not len(registry):
            self.error_collector.add(
                geometry.line_count, "No object markers found in file",
                DiagnosticCode.NO_OBJECTS_FOUND, DiagnosticSeverity.INFO,
            )
            logger.info("No objects found, %s",
                        "passing file through" if self.config.passthrough_when_empty
                        else "writing empty header")
            if self.config.passthrough_when_empty:
                lines.copy_to(output)
                return self._finish(ProcessStatus.NO_OBJECTS_FOUND, dialect, registry)

        rewrite = RewritePass(dialect, registry, self.config, geometry.newline or "\n",
                              geometry.renames, geometry.empty_visits)
        with lines.open_pass() as stream:
            rewrite.run(stream, output)

        status = ProcessStatus.PROCESSED if len(registry) else ProcessStatus.NO_OBJECTS_FOUND
        return self._finish(status, dialect, registry, modified=True)

    def _finish(self, status: ProcessStatus, dialect: Optional[Dialect],
                registry: Optional[ObjectRegistry] = None,
                modified: bool = False) -> ProcessResult:
        registry = registry if registry is not None else ObjectRegistry()
        result = ProcessResult(
            status=status,
            dialect=dialect,
            registry=registry,
            object_count=len(registry),
            diagnostics=self.error_collector.get_all(),
            modified=modified,
        )
        self._last_result = result
        return result

    def get_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the last run for display purposes.

        Returns:
            Dictionary with status, dialect, bounding box and per-object statistics
        """
        result = self._last_result
        if result is None:
            return {}

        min_point, max_point = result.registry.get_bounding_box()
        stats = result.registry.get_statistics()
        return {
            'status': result.status.value,
            'dialect': result.dialect.value if result.dialect else None,
            'config': self.config.name,
            'bounding_box': {
                'min': min_point.to_tuple() if min_point else None,
                'max': max_point.to_tuple() if max_point else None,
            },
            'diagnostics': len(result.diagnostics),
            **stats,
        }
