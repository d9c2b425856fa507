"""
Second pass: re-emit every original line, inserting the definition header and
the start/end markers computed from the finished registry.
"""
import logging
from typing import AbstractSet, Dict, Iterable, Optional, TextIO

from cancel_preprocessor.config.processing_config import ProcessingConfig
from cancel_preprocessor.core import canonical
from cancel_preprocessor.core.geometry import ObjectRegistry
from cancel_preprocessor.core.object_tracker import ObjectTracker
from cancel_preprocessor.core.streams import split_terminator
from cancel_preprocessor.dialects.base_dialect import Dialect, Other
from cancel_preprocessor.dialects.detector import create_dialect

logger = logging.getLogger(__name__)


class RewritePass:
    """
    Insertion-only rewrite. Original lines are written exactly as read.

    The classifier and tracker are fresh instances without a diagnostic
    collector, so anomalies already reported by the geometry pass are not
    reported twice. Objects start under the names the geometry pass settled
    on, and visits it found empty get no markers.
    """

    def __init__(self, dialect: Dialect, registry: ObjectRegistry,
                 config: ProcessingConfig, newline: str = "\n",
                 renames: Optional[Dict[str, str]] = None,
                 empty_visits: AbstractSet[int] = frozenset()):
        self.registry = registry
        self.config = config
        self.newline = newline
        self.classifier = create_dialect(dialect)
        self.classifier.use_names(renames or {})
        self.empty_visits = empty_visits
        self.tracker = ObjectTracker(self.classifier.switches_implicitly)

        self.header_written = False
        self.inserted_lines = 0
        self.suppressed = False

    def run(self, lines: Iterable[str], output: TextIO):
        last_terminator = ''
        for line_number, line in enumerate(lines, 1):
            content, last_terminator = split_terminator(line)
            kind = self.classifier.classify(content, line_number)

            if not self.header_written and (not isinstance(kind, Other) or self._is_content(content)):
                self._write_header(output)

            transition = self.tracker.feed(kind, line_number)
            if transition.closed is not None:
                self._end(output, transition.closed)

            output.write(line)

            if transition.opened is not None:
                self.suppressed = line_number in self.empty_visits
                if not self.suppressed:
                    self._insert(output, canonical.object_start(transition.opened, self.newline))

        if not self.header_written:
            self._write_header(output)

        closed = self.tracker.finish()
        if closed is not None and not self.suppressed:
            if not last_terminator:
                output.write(self.newline)
            self._end(output, closed)

        logger.debug("Rewrite pass inserted %d lines", self.inserted_lines)

    def _end(self, output: TextIO, name: str):
        if self.suppressed:
            self.suppressed = False
            return
        self._insert(output, canonical.object_end(name, self.newline))

    @staticmethod
    def _is_content(content: str) -> bool:
        stripped = content.strip()
        return bool(stripped) and not stripped.startswith(';')

    def _write_header(self, output: TextIO):
        for header_line in canonical.header_lines(self.registry, self.config.polygon_mode, self.newline):
            self._insert(output, header_line)
        self.header_written = True

    def _insert(self, output: TextIO, text: str):
        output.write(text)
        self.inserted_lines += 1
