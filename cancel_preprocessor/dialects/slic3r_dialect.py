"""
Slic3r family dialect: Slic3r, PrusaSlicer and SuperSlicer.

Objects are delimited by paired comments:
    ; printing object cube.stl id:0 copy 0
    ; stop printing object cube.stl id:0 copy 0
"""
from .base_dialect import BaseDialect, Dialect, LineKind, ObjectEnd, OTHER, sanitize_name

START_PREFIX = "; printing object "
STOP_PREFIX = "; stop printing object "


class Slic3rDialect(BaseDialect):
    dialect = Dialect.SLIC3R
    signatures = (
        "; generated by SuperSlicer",
        "; generated by PrusaSlicer",
        "; generated by Slic3r",
    )

    def classify(self, line: str, line_number: int = 0) -> LineKind:
        if not line.startswith(';'):
            return OTHER
        if line.startswith(START_PREFIX):
            return self._start(line[len(START_PREFIX):], line_number)
        if line.startswith(STOP_PREFIX):
            return ObjectEnd(sanitize_name(line[len(STOP_PREFIX):]) or None)
        return OTHER
