"""
First pass: attribute extruding moves to objects and build the object registry.
"""
import logging
from typing import Dict, Iterable, Optional, Set

from cancel_preprocessor.config.processing_config import ProcessingConfig, LayerFilter
from cancel_preprocessor.core.canonical import is_preprocessed_line
from cancel_preprocessor.core.geometry import ObjectRegistry
from cancel_preprocessor.core.interpreter import ModalInterpreter
from cancel_preprocessor.core.object_tracker import ObjectTracker
from cancel_preprocessor.core.streams import split_terminator
from cancel_preprocessor.dialects.base_dialect import Dialect, ObjectStart, Other
from cancel_preprocessor.dialects.detector import create_dialect
from cancel_preprocessor.utils.errors import DiagnosticCollector

logger = logging.getLogger(__name__)


class GeometryPass:
    """
    Streams the file once, feeding every line through the dialect classifier
    and the modal interpreter, and accumulates per-object geometry.
    """

    def __init__(self, dialect: Dialect, config: ProcessingConfig,
                 error_collector: DiagnosticCollector):
        self.dialect = dialect
        self.config = config
        self.error_collector = error_collector
        self.layer_filter: LayerFilter = config.layer_filter()

        self.registry = ObjectRegistry(config.hull_tolerance, config.max_hull_points)
        self.interpreter = ModalInterpreter(error_collector)
        self.classifier = create_dialect(dialect, error_collector)
        self.tracker = ObjectTracker(self.classifier.switches_implicitly, error_collector)

        self.newline: Optional[str] = None
        self.line_count = 0
        self.already_processed = False
        # Start lines of visits that saw no moves; they get no markers
        self.empty_visits: Set[int] = set()
        self.renames: Dict[str, str] = {}
        self._visit_line = 0
        self._visit_moves = 0

    def run(self, lines: Iterable[str]) -> ObjectRegistry:
        """
        Process every line and return the finalized registry.

        Stops early if the file already carries object definitions.
        """
        for line_number, line in enumerate(lines, 1):
            self.line_count = line_number
            content, terminator = split_terminator(line)
            if self.newline is None and terminator:
                self.newline = terminator

            if is_preprocessed_line(content):
                logger.info("G-code already supports cancellation (line %d)", line_number)
                self.already_processed = True
                break

            self._process_line(content, line_number)

        if self.tracker.finish() is not None:
            self._close_visit()
        self._apply_labels()
        self.registry.finalize()
        logger.debug("Geometry pass read %d lines, found %d objects",
                     self.line_count, len(self.registry))
        return self.registry

    def _process_line(self, content: str, line_number: int):
        kind = self.classifier.classify(content, line_number)
        transition = self.tracker.feed(kind, line_number)
        if transition.closed is not None:
            self._close_visit()

        if transition.opened is not None:
            raw = kind.raw_identifier if isinstance(kind, ObjectStart) else None
            record = self.registry.ensure(transition.opened, raw, line_number, self.error_collector)
            record.visits += 1
            self._visit_line = line_number
            self._visit_moves = 0
        elif isinstance(kind, ObjectStart):
            # Repeated start for the active object; still register its identifier
            self.registry.ensure(kind.name, kind.raw_identifier, line_number, self.error_collector)

        if not isinstance(kind, Other):
            return

        move = self.interpreter.apply(content, line_number)
        if move is None or self.tracker.active is None:
            return

        record = self.registry.get(self.tracker.active)
        if self._visit_moves == 0:
            record.layers += 1
        self._visit_moves += 1
        collect_hull = (self.config.polygon_mode == "hull"
                        and self.layer_filter.contains(record.layer))
        record.add_point(move.x, move.y, collect_hull)

    def _close_visit(self):
        if self._visit_moves == 0:
            self.empty_visits.add(self._visit_line)
        self._visit_moves = 0

    def _apply_labels(self):
        for old, (new, line_number) in self.classifier.learned_names().items():
            if self.registry.rename(old, new, line_number, self.error_collector):
                self.renames[old] = new
