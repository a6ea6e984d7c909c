"""Count lines, words and bytes."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import BinaryIO, Optional, Sequence

WORD_SEPARATORS = frozenset(b" \r\t\n\v")
CHUNK = 512


@dataclass(frozen=True)
class WordCount:
    """Lines, words and bytes of one input."""

    lines: int = 0
    words: int = 0
    chars: int = 0

    def format(self, name: str) -> str:
        """The report line for an input called name."""
        return f"{self.lines} {self.words} {self.chars} {name}"


def count(stream: BinaryIO) -> WordCount:
    """Count the lines, words and bytes read from a binary stream."""
    lines = words = chars = 0
    in_word = False
    while True:
        chunk = stream.read(CHUNK)
        if not chunk:
            break
        chars += len(chunk)
        lines += chunk.count(b"\n")
        for byte in chunk:
            if byte in WORD_SEPARATORS:
                in_word = False
            elif not in_word:
                words += 1
                in_word = True
    return WordCount(lines, words, chars)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Report counts for each named file, or for standard input."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        try:
            result = count(sys.stdin.buffer)
        except OSError:
            print("wc: read error")
            return 1
        print(result.format(""))
        return 0
    for name in args:
        try:
            handle = open(name, "rb")
        except OSError:
            print(f"wc: cannot open {name}")
            return 1
        with handle:
            try:
                result = count(handle)
            except OSError:
                print("wc: read error")
                return 1
        print(result.format(name))
    return 0