"""
ideaMaker dialect.

The object switch is the ;PRINTING_ID: line; the readable name only appears
on the ;PRINTING: line right before the first switch to that id:
    ;PRINTING: cube.3mf
    ;PRINTING_ID: 0
Later switches to the same id may omit ;PRINTING:, so names are remembered per id.
"""
from typing import Dict, Optional

from .base_dialect import BaseDialect, Dialect, LineKind, ObjectEnd, ObjectStart, OTHER

PRINTING_PREFIX = ";PRINTING:"
PRINTING_ID_PREFIX = ";PRINTING_ID:"
NO_OBJECT_ID = "-1"
FINISHED = ";REMAINING_TIME: 0"


class IdeaMakerDialect(BaseDialect):
    dialect = Dialect.IDEAMAKER
    signatures = (";Sliced by ideaMaker",)
    switches_implicitly = True

    def __init__(self, error_collector=None):
        super().__init__(error_collector)
        self.pending_name: Optional[str] = None
        self.names_by_id: Dict[str, str] = {}

    def reset(self):
        self.pending_name = None
        self.names_by_id = {}

    def classify(self, line: str, line_number: int = 0) -> LineKind:
        pending_name, self.pending_name = self.pending_name, None

        if not line.startswith(';'):
            return OTHER

        if line.startswith(PRINTING_PREFIX):
            self.pending_name = line[len(PRINTING_PREFIX):].strip()
            return OTHER

        if line.startswith(PRINTING_ID_PREFIX):
            object_id = line[len(PRINTING_ID_PREFIX):].strip()
            if object_id == NO_OBJECT_ID:
                return ObjectEnd()
            if pending_name:
                self.names_by_id.setdefault(object_id, pending_name)
            kind = self._start(self.names_by_id.get(object_id, object_id), line_number)
            if isinstance(kind, ObjectStart):
                # The id, not the label, identifies the object; two ids sharing a
                # label are distinct objects that collide after sanitizing.
                return ObjectStart(kind.name, object_id)
            return kind

        if line.rstrip() == FINISHED:
            return ObjectEnd()

        return OTHER
