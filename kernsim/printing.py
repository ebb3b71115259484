"""Console text helpers: integer formatting, parsing and line input."""

from __future__ import annotations

from typing import Callable

DIGITS = "0123456789ABCDEF"

_UINT32_MASK = 0xFFFFFFFF

__all__ = ["format_int", "string_to_int", "read_line", "print_string", "print_int"]


def format_int(value: int, base: int = 10, signed: bool = False) -> str:
    """Format a 32-bit integer in ``base``; negatives wrap unless ``signed``."""
    if not 2 <= base <= len(DIGITS):
        raise ValueError(f"base must be between 2 and {len(DIGITS)}: {base}")
    negative = signed and value < 0
    number = (-value if negative else value) & _UINT32_MASK

    digits = []
    while True:
        number, remainder = divmod(number, base)
        digits.append(DIGITS[remainder])
        if number == 0:
            break
    if negative:
        digits.append("-")
    return "".join(reversed(digits))


def string_to_int(text: str) -> int:
    """Parse the leading decimal digits of ``text``; 0 if there are none."""
    result = 0
    for ch in text:
        if not "0" <= ch <= "9":
            break
        result = result * 10 + (ord(ch) - ord("0"))
    return result


def read_line(getc: Callable[[], str], limit: int) -> str:
    """Read characters until newline, carriage return, NUL or ``limit - 1`` chars."""
    chars: list[str] = []
    while len(chars) + 1 < limit:
        ch = getc()
        if not ch or ch == "\0":
            break
        chars.append(ch)
        if ch in "\n\r":
            break
    return "".join(chars)


def print_string(putc: Callable[[str], object], text: str) -> None:
    """Send ``text`` to ``putc`` one character at a time, stopping at NUL."""
    for ch in text.split("\0", 1)[0]:
        putc(ch)


def print_int(
    putc: Callable[[str], object], value: int, base: int = 10, signed: bool = False
) -> None:
    """Send the formatted integer to ``putc``."""
    print_string(putc, format_int(value, base, signed))