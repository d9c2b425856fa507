"""
Marlin M486 object labels.

    M486 T3          ; three objects in this file
    M486 S0          ; start printing object 0
    M486 S0 A"cube"  ; same, with a label
    M486 Acube.stl   ; label for the object selected last (PrusaSlicer)
    M486 S-1         ; no object

A label may follow the selection it names, so objects are started under
their numeric id and renamed once the whole file has been seen.
"""
import re
from typing import Dict, Optional, Tuple

from .base_dialect import BaseDialect, Dialect, LineKind, ObjectEnd, ObjectStart, OTHER, sanitize_name
from cancel_preprocessor.core.lexer import GCodeLexer
from cancel_preprocessor.utils.errors import DiagnosticCode

M486_PATTERN = re.compile(r'^\s*M486(?!\d)', re.IGNORECASE)
# Quoted, or unquoted up to the end of the code
LABEL_PATTERN = re.compile(r'(?<![A-Z])A(?:"([^"]*)"|(.+))', re.IGNORECASE)
SELECT_PATTERN = re.compile(r'(?<![A-Z])S\s*(-?\d+)', re.IGNORECASE)


class M486Dialect(BaseDialect):
    dialect = Dialect.M486
    signatures = ("M486",)
    switches_implicitly = True

    def __init__(self, error_collector=None):
        super().__init__(error_collector)
        self.current_id: Optional[str] = None
        self.labels: Dict[str, Tuple[str, int]] = {}
        self.names: Dict[str, str] = {}

    def reset(self):
        self.current_id = None
        self.labels = {}

    @classmethod
    def matches_signature(cls, line: str) -> bool:
        return M486_PATTERN.match(line) is not None

    def learned_names(self) -> Dict[str, Tuple[str, int]]:
        return dict(self.labels)

    def use_names(self, names: Dict[str, str]):
        self.names = dict(names)

    def classify(self, line: str, line_number: int = 0) -> LineKind:
        match = M486_PATTERN.match(line)
        if not match:
            return OTHER

        code, _ = GCodeLexer.split_comment(line[match.end():])
        label = None
        label_match = LABEL_PATTERN.search(code)
        if label_match:
            label = label_match.group(1) if label_match.group(1) is not None else label_match.group(2)
            code = code[:label_match.start()] + code[label_match.end():]

        kind = OTHER
        select = SELECT_PATTERN.search(code)
        if select:
            object_id = str(int(select.group(1)))
            if object_id == "-1":
                self.current_id = None
                return ObjectEnd()
            self.current_id = object_id
            kind = ObjectStart(self.names.get(object_id, object_id), object_id)

        if label is not None and self.current_id is not None:
            self._remember_label(self.current_id, label, line_number)
        return kind

    def _remember_label(self, object_id: str, label: str, line_number: int):
        if object_id in self.labels:
            return
        name = sanitize_name(label.strip())
        if not name:
            if self.error_collector is not None:
                self.error_collector.add(
                    line_number,
                    f"Label {label!r} for object {object_id} is empty after sanitizing; using the id",
                    DiagnosticCode.INVALID_OBJECT_NAME,
                )
            return
        self.labels[object_id] = (name, line_number)
