"""
G-code lexer for splitting a single raw line into command, parameters and comment.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class Command:
    """A single tokenized line of G-code."""
    command: Optional[str] = None             # e.g. "G1", "M486", "T0"
    params: Dict[str, str] = field(default_factory=dict)  # raw, unconverted values
    comment: Optional[str] = None

    def has_param(self, key: str) -> bool:
        return key.upper() in self.params

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.params.get(key.upper(), default)


class GCodeLexer:
    """Tokenizes one line of G-code at a time."""

    # Command word at the start of the code part: G1, G01, G92.1, M486, T0
    COMMAND_PATTERN = re.compile(r'([GMT])\s*([+-]?\d+(?:\.\d+)?)', re.IGNORECASE)

    # Parameter word: letter, optional space before a numeric value, then everything
    # up to the next letter or space.
    # The value is kept raw so that malformed numbers can be reported later.
    WORD_PATTERN = re.compile(r'([A-Z])(?:\s+(?=[-+.\d]))?([^A-Z\s]*)', re.IGNORECASE)

    # Extended (controller macro) parameter: KEY=VALUE
    EXTENDED_PATTERN = re.compile(r'([A-Z_][A-Z0-9_]*)=(\S*)', re.IGNORECASE)

    # Quoted argument, as used by M486 A"label"
    QUOTED_PATTERN = re.compile(r'([A-Z])"([^"]*)"', re.IGNORECASE)

    def tokenize(self, line: str) -> Command:
        """Tokenize a single line (with or without its line terminator)."""
        code, comment = self.split_comment(line)
        code = code.strip()
        if not code:
            return Command(comment=comment)

        match = self.COMMAND_PATTERN.match(code)
        if not match:
            return Command(comment=comment)

        command = self._normalize_command(match.group(1), match.group(2))
        rest = code[match.end():]
        return Command(command=command, params=self._parse_params(rest), comment=comment)

    @staticmethod
    def split_comment(line: str):
        """Split a line into its code part and its ';' comment (or None)."""
        line = line.rstrip('\r\n')
        if ';' in line:
            code, comment = line.split(';', 1)
            return code, comment
        return line, None

    def _parse_params(self, rest: str) -> Dict[str, str]:
        params: Dict[str, str] = {}

        for match in self.QUOTED_PATTERN.finditer(rest):
            params[match.group(1).upper()] = match.group(2)
        rest = self.QUOTED_PATTERN.sub(' ', rest)

        if '=' in rest:
            for match in self.EXTENDED_PATTERN.finditer(rest):
                params[match.group(1).upper()] = match.group(2)
            return params

        for match in self.WORD_PATTERN.finditer(rest):
            letter = match.group(1).upper()
            params.setdefault(letter, match.group(2))
        return params

    @staticmethod
    def _normalize_command(letter: str, number: str) -> str:
        """G01 -> G1, g1 -> G1, G92.1 stays G92.1"""
        try:
            value = float(number)
        except ValueError:
            return f"{letter.upper()}{number}"
        if value.is_integer():
            return f"{letter.upper()}{int(value)}"
        return f"{letter.upper()}{number.lstrip('+0') or '0'}"
