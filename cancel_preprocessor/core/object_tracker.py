"""
Single active-object state, shared by the geometry and rewrite passes.

Object regions never nest: a start marker for a different object closes the
active one. Both passes feed the same classified lines through this class, so
they always agree on which object a line belongs to.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from cancel_preprocessor.dialects.base_dialect import LineKind, ObjectStart, ObjectEnd
from cancel_preprocessor.utils.errors import DiagnosticCollector, DiagnosticCode

logger = logging.getLogger(__name__)


@dataclass
class Transition:
    """Object boundaries produced by one line."""
    closed: Optional[str] = None   # object that ends before this line
    opened: Optional[str] = None   # object that starts after this line


NO_TRANSITION = Transition()


class ObjectTracker:
    """Tracks the currently active object name, or None."""

    def __init__(self, switches_implicitly: bool = False,
                 error_collector: Optional[DiagnosticCollector] = None):
        self.switches_implicitly = switches_implicitly
        self.error_collector = error_collector
        self.active: Optional[str] = None

    def feed(self, kind: LineKind, line_number: int = 0) -> Transition:
        if isinstance(kind, ObjectStart):
            return self._start(kind.name, line_number)
        if isinstance(kind, ObjectEnd):
            return self._end()
        return NO_TRANSITION

    def finish(self) -> Optional[str]:
        """Close the active object at end of input and return its name."""
        closed, self.active = self.active, None
        return closed

    def _start(self, name: str, line_number: int) -> Transition:
        if self.active == name:
            return NO_TRANSITION

        closed = self.active
        # Only the collecting pass reports, so each anomaly is logged once
        if closed is not None and not self.switches_implicitly and self.error_collector is not None:
            message = f"Object {name!r} started while {closed!r} was active; closing {closed!r}"
            logger.warning("Line %d: %s", line_number, message)
            self.error_collector.add(line_number, message, DiagnosticCode.IMPLICIT_OBJECT_CLOSE)

        self.active = name
        return Transition(closed=closed, opened=name)

    def _end(self) -> Transition:
        closed, self.active = self.active, None
        if closed is None:
            return NO_TRANSITION
        return Transition(closed=closed)
