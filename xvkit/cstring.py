"""NUL-terminated byte-string and memory helpers."""

from __future__ import annotations

from typing import BinaryIO, Optional, Union

BytesLike = Union[bytes, bytearray, memoryview, str]


def _cstr(s: BytesLike) -> bytes:
    """Bytes of s up to, not including, the first NUL."""
    data = s.encode() if isinstance(s, str) else bytes(s)
    end = data.find(0)
    return data if end < 0 else data[:end]


def _byte(c: Union[int, str, bytes]) -> int:
    if isinstance(c, int):
        return c & 0xFF
    raw = c.encode() if isinstance(c, str) else bytes(c)
    if len(raw) != 1:
        raise ValueError("expected a single byte")
    return raw[0]


def _check_count(n: int, *sizes: int) -> None:
    if n < 0:
        raise ValueError("byte count must not be negative")
    if any(n > size for size in sizes):
        raise ValueError("byte count exceeds buffer")


def memset(buf: bytearray, c: int, n: int) -> bytearray:
    """Fill the first n bytes of buf with the low byte of c."""
    _check_count(n, len(buf))
    buf[:n] = bytes([c & 0xFF]) * n
    return buf


def memcmp(a: BytesLike, b: BytesLike, n: int) -> int:
    """Compare n bytes; the difference of the first unequal pair, or 0."""
    a, b = bytes(a), bytes(b)
    _check_count(n, len(a), len(b))
    for x, y in zip(a[:n], b[:n]):
        if x != y:
            return x - y
    return 0


def memmove(buf: bytearray, dst: int, src: int, n: int) -> bytearray:
    """Copy n bytes within buf from offset src to offset dst; overlap is safe."""
    if dst < 0 or src < 0:
        raise ValueError("offsets must not be negative")
    _check_count(n, len(buf) - dst, len(buf) - src)
    buf[dst:dst + n] = bytes(buf[src:src + n])
    return buf


def strlen(s: BytesLike) -> int:
    """Length of a NUL-terminated string."""
    return len(_cstr(s))


def _compare(p: bytes, q: bytes) -> int:
    for x, y in zip(p + b"\0", q + b"\0"):
        if x == 0 or x != y:
            return x - y
    return 0


def strncmp(p: BytesLike, q: BytesLike, n: int) -> int:
    """Compare at most n characters of two strings."""
    if n < 0:
        raise ValueError("length must not be negative")
    return _compare(_cstr(p)[:n], _cstr(q)[:n])


def strcmp(p: BytesLike, q: BytesLike) -> int:
    """Compare two strings."""
    return _compare(_cstr(p), _cstr(q))


def strncpy(t: BytesLike, n: int) -> bytes:
    """The n-byte buffer strncpy would fill: t truncated or NUL-padded."""
    if n <= 0:
        return b""
    copied = _cstr(t)[:n]
    return copied + bytes(n - len(copied))


def safestrcpy(t: BytesLike, n: int) -> bytes:
    """Copy of t that fits an n-byte buffer, always NUL-terminated."""
    if n <= 0:
        return b""
    return _cstr(t)[:n - 1] + b"\0"


def strchr(s: BytesLike, c: Union[int, str, bytes]) -> Optional[int]:
    """Index of the first c in s, or None; the terminator is never found."""
    value = _byte(c)
    if value == 0:
        return None
    idx = _cstr(s).find(value)
    return None if idx < 0 else idx


def atoi(s: BytesLike) -> int:
    """Value of the leading decimal digits of s; no sign, no whitespace."""
    n = 0
    for ch in _cstr(s):
        if not 0x30 <= ch <= 0x39:
            break
        n = n * 10 + ch - 0x30
    return n


def gets(stream: BinaryIO, max_len: int) -> bytes:
    """Read one line, keeping its newline or return, of at most max_len-1 bytes."""
    out = bytearray()
    while len(out) + 1 < max_len:
        ch = stream.read(1)
        if not ch:
            break
        if isinstance(ch, str):
            ch = ch.encode()
        out += ch
        if ch in (b"\n", b"\r"):
            break
    return bytes(out)