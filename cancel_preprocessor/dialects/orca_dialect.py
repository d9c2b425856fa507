"""
OrcaSlicer / BambuStudio dialect.

Understands the Slic3r-style object comments these slicers inherited, plus
the label-id form they emit when object labelling is enabled:
    ; start printing object, unique label id: 15
    ; stop printing object, unique label id: 15
"""
import re

from .base_dialect import Dialect, LineKind, ObjectEnd, OTHER, sanitize_name
from .slic3r_dialect import Slic3rDialect

LABEL_START_PATTERN = re.compile(r'^; start printing object, unique label id:\s*(\S+)')
LABEL_STOP_PATTERN = re.compile(r'^; stop printing object, unique label id:\s*(\S+)')


class OrcaSlicerDialect(Slic3rDialect):
    dialect = Dialect.ORCASLICER
    signatures = (
        "; generated by OrcaSlicer",
        "; generated by BambuStudio",
        "; BambuStudio",
    )

    def classify(self, line: str, line_number: int = 0) -> LineKind:
        if not line.startswith(';'):
            return OTHER

        match = LABEL_START_PATTERN.match(line)
        if match:
            return self._start(match.group(1), line_number)

        match = LABEL_STOP_PATTERN.match(line)
        if match:
            return ObjectEnd(sanitize_name(match.group(1)) or None)

        return super().classify(line, line_number)
