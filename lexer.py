from __future__ import annotations
import re
from typing import Optional, Tuple

from values import Value, make_flt, make_int, make_str


NUMERAL_START = "0123456789ABCDEF_."
DIGIT_VALUES = {ch: i for i, ch in enumerate("0123456789ABCDEF")}
BLANKS = " \t\n"

_NUMERAL_RE = re.compile(r"_?[0-9A-F.]*")
_DECIMAL_PREFIX_RE = re.compile(r"[0-9]*(?:\.[0-9]*)?")


class Lexer:
    """Cursor over one instruction string.

    The interpreter reads instructions one character at a time through
    ``next_char``/``peek`` and hands control to ``scan_numeral`` or
    ``scan_string`` when a literal starts.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.index = 0

    @property
    def eof(self) -> bool:
        return self.index >= len(self.text)

    def next_char(self) -> str:
        ch = self.text[self.index]
        self.index += 1
        return ch

    def peek(self) -> Optional[str]:
        if self.index < len(self.text):
            return self.text[self.index]
        return None

    def scan_numeral(self, ibase: int) -> Value:
        # The cursor sits on the first character of the numeral.
        match = _NUMERAL_RE.match(self.text, self.index)
        run = match.group(0)
        self.index = match.end()
        negative = run.startswith("_")
        body = run[1:] if negative else run
        if "." in body:
            number = parse_decimal(body)
            return make_flt(-number if negative else number)
        number = parse_integer(body, ibase)
        return make_int(-number if negative else number)

    def scan_string(self) -> Value:
        # The cursor sits just past the opening '['.
        text = self.text
        n = len(text)
        start = self.index
        depth = 1
        pos = start
        while pos < n:
            ch = text[pos]
            pos += 1
            if ch == "[":
                depth += 1
            elif ch == "]":
                depth -= 1
                if depth == 0:
                    self.index = pos
                    return make_str(text[start:pos - 1])
        self.index = n
        return make_str(text[start:])

    def rest_of_line(self) -> str:
        end = self.text.find("\n", self.index)
        if end == -1:
            line = self.text[self.index:]
            self.index = len(self.text)
        else:
            line = self.text[self.index:end]
            self.index = end + 1
        return line

    def skip_comment(self) -> None:
        self.rest_of_line()

    def skip_blank(self) -> None:
        text = self.text
        n = len(text)
        while self.index < n:
            ch = text[self.index]
            if ch == "#":
                self.skip_comment()
            elif ch in BLANKS:
                self.index += 1
            else:
                break

    def location(self, index: Optional[int] = None) -> Tuple[int, int]:
        """Return the 1-based (line, column) of ``index`` (default: cursor)."""
        if index is None:
            index = self.index
        index = min(index, len(self.text))
        line = self.text.count("\n", 0, index) + 1
        column = index - (self.text.rfind("\n", 0, index) + 1) + 1
        return line, column

    def source_line(self, index: Optional[int] = None) -> str:
        if index is None:
            index = self.index
        start = self.text.rfind("\n", 0, index) + 1
        end = self.text.find("\n", start)
        return self.text[start:] if end == -1 else self.text[start:end]


def parse_integer(digits: str, ibase: int) -> int:
    # Conversion stops at the first digit that is not valid in the radix.
    number = 0
    for ch in digits:
        digit = DIGIT_VALUES[ch]
        if digit >= ibase:
            break
        number = number * ibase + digit
    return number


def parse_decimal(text: str) -> float:
    """Read the longest decimal prefix of ``text``; fractional literals ignore ibase."""
    prefix = _DECIMAL_PREFIX_RE.match(text)
    digits = prefix.group(0) if prefix else ""
    if not any(ch.isdigit() for ch in digits):
        return 0.0
    return float(digits)
