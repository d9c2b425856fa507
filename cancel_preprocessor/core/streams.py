"""
Re-readable line input for the two-pass pipeline.
"""
import shutil
from contextlib import contextmanager
from typing import Callable, Iterator, TextIO, Union

from cancel_preprocessor.utils.errors import UnseekableInputError

LINE_TERMINATORS = ('\r\n', '\n', '\r')


def split_terminator(line: str):
    """Split a raw line into (content, terminator)."""
    for terminator in LINE_TERMINATORS:
        if line.endswith(terminator):
            return line[:-len(terminator)], terminator
    return line, ''


class LineSource:
    """
    Hands out the same sequence of lines once per pass.

    Accepts either a seekable text stream, which is rewound to its starting
    offset for every pass, or a zero-argument callable returning a fresh text
    stream. Streams should be opened with newline='' so that line terminators
    reach the output unchanged.
    """

    def __init__(self, source: Union[TextIO, Callable[[], TextIO]]):
        self._opener = None
        self._stream = None
        self._start = 0

        if hasattr(source, 'read'):
            if not source.seekable():
                raise UnseekableInputError()
            self._stream = source
            self._start = source.tell()
        elif callable(source):
            self._opener = source
        else:
            raise TypeError(f"Expected a text stream or an opener, got {type(source).__name__}")

    @contextmanager
    def open_pass(self) -> Iterator[TextIO]:
        """Context manager yielding a stream positioned at the first line."""
        if self._opener is not None:
            with self._opener() as stream:
                yield stream
        else:
            self._stream.seek(self._start)
            yield self._stream

    def copy_to(self, output: TextIO):
        """Copy the input unchanged to output."""
        with self.open_pass() as stream:
            shutil.copyfileobj(stream, output)
