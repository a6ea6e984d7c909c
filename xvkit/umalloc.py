"""A first-fit, address-ordered free-list allocator over a growable break."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

HEADER_SIZE = 8
"""Bytes in a block header; every block is a whole number of headers."""

MIN_UNITS = 4096
"""Fewest header-sized units requested from the break at a time."""

DEFAULT_LIMIT = 16 * 1024 * 1024


@dataclass
class _Header:
    ptr: int
    size: int


class Heap:
    """Memory handed out from a break that grows up from address 0."""

    def __init__(self, limit: int = DEFAULT_LIMIT):
        if limit < 0:
            raise ValueError("limit must not be negative")
        self.limit = limit
        self.brk = 0
        self._base = -HEADER_SIZE
        self._headers: dict[int, _Header] = {self._base: _Header(self._base, 0)}
        self._freep: Optional[int] = None
        self._allocated: set[int] = set()

    def sbrk(self, n: int) -> int:
        """Move the break by n bytes and return the old break."""
        new = self.brk + n
        if new < 0 or new > self.limit:
            raise MemoryError("cannot move the break that far")
        old, self.brk = self.brk, new
        return old

    def _morecore(self, nu: int) -> Optional[int]:
        nu = max(nu, MIN_UNITS)
        try:
            p = self.sbrk(nu * HEADER_SIZE)
        except MemoryError:
            return None
        self._headers[p] = _Header(p, nu)
        self._release(p)
        return self._freep

    def _release(self, bp: int) -> None:
        hdr = self._headers
        block = hdr[bp]
        p = self._freep
        while not (p < bp < hdr[p].ptr):
            if p >= hdr[p].ptr and (bp > p or bp < hdr[p].ptr):
                break
            p = hdr[p].ptr
        cur = hdr[p]
        nxt = cur.ptr
        if bp + block.size * HEADER_SIZE == nxt:
            block.size += hdr[nxt].size
            block.ptr = hdr[nxt].ptr
            del hdr[nxt]
        else:
            block.ptr = nxt
        if p + cur.size * HEADER_SIZE == bp:
            cur.size += block.size
            cur.ptr = block.ptr
            del hdr[bp]
        else:
            cur.ptr = bp
        self._freep = p

    def malloc(self, nbytes: int) -> Optional[int]:
        """Address of a new block of at least nbytes, or None when out of memory."""
        if nbytes < 0:
            raise ValueError("size must not be negative")
        hdr = self._headers
        nunits = (nbytes + HEADER_SIZE - 1) // HEADER_SIZE + 1
        if self._freep is None:
            base = hdr[self._base]
            base.ptr = self._base
            base.size = 0
            self._freep = self._base
        prevp = self._freep
        p = hdr[prevp].ptr
        while True:
            cur = hdr[p]
            if cur.size >= nunits:
                if cur.size == nunits:
                    hdr[prevp].ptr = cur.ptr
                else:
                    cur.size -= nunits
                    p += cur.size * HEADER_SIZE
                    hdr[p] = _Header(p, nunits)
                self._freep = prevp
                ap = p + HEADER_SIZE
                self._allocated.add(ap)
                return ap
            if p == self._freep:
                found = self._morecore(nunits)
                if found is None:
                    return None
                p = found
            prevp, p = p, hdr[p].ptr

    def free(self, ap: int) -> None:
        """Return a block obtained from malloc."""
        if ap not in self._allocated:
            raise ValueError(f"address {ap} was not allocated")
        self._allocated.remove(ap)
        self._release(ap - HEADER_SIZE)

    def free_blocks(self) -> list[tuple[int, int]]:
        """Free blocks as (address, size in bytes including header), by address."""
        if self._freep is None:
            return []
        hdr = self._headers
        out = []
        p = hdr[self._base].ptr
        while p != self._base:
            out.append((p, hdr[p].size * HEADER_SIZE))
            p = hdr[p].ptr
        return out