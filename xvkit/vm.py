"""Two-level x86 page tables kept in a simulated physical memory."""

from __future__ import annotations

import struct
from typing import Optional

from xvkit.constants import (
    DEVSPACE,
    EXTMEM,
    KERNBASE,
    KERNLINK,
    PHYSTOP,
    UINT_MASK,
    KernelPanic,
    p2v,
    v2p,
)
from xvkit.mmu import (
    NPDENTRIES,
    PDXSHIFT,
    PGSIZE,
    PTE_P,
    PTE_U,
    PTE_W,
    pdx,
    pg_round_down,
    pg_round_up,
    pte_addr,
    pte_flags,
    ptx,
)


class PhysicalMemory:
    """Page-granular physical memory with a free-page allocator.

    Page 0 is never handed out, so physical address 0 never names a page.
    """

    def __init__(self, size: int):
        if size % PGSIZE or size < 2 * PGSIZE:
            raise ValueError("size must be a multiple of the page size, at least two pages")
        self.size = size
        self._data = bytearray(size)
        self._free = list(range(size - PGSIZE, 0, -PGSIZE))
        self._free_set = set(self._free)

    def kalloc(self) -> Optional[int]:
        """Physical address of a free page, or None when none is left."""
        if not self._free:
            return None
        pa = self._free.pop()
        self._free_set.remove(pa)
        return pa

    def kfree(self, pa: int) -> None:
        """Return a page to the free list."""
        if pa % PGSIZE or not PGSIZE <= pa < self.size or pa in self._free_set:
            raise KernelPanic("kfree")
        self._free.append(pa)
        self._free_set.add(pa)

    def _check(self, pa: int, n: int) -> None:
        if pa < 0 or n < 0 or pa + n > self.size:
            raise ValueError(f"physical range {pa:#x}+{n} is outside memory")

    def read(self, pa: int, n: int) -> bytes:
        """n bytes starting at physical address pa."""
        self._check(pa, n)
        return bytes(self._data[pa:pa + n])

    def write(self, pa: int, data: bytes) -> None:
        """Store data at physical address pa."""
        data = bytes(data)
        self._check(pa, len(data))
        self._data[pa:pa + len(data)] = data

    def free_pages(self) -> int:
        """Number of pages on the free list."""
        return len(self._free)


def _load(memory: PhysicalMemory, pa: int) -> int:
    return int.from_bytes(memory.read(pa, 4), "little")


def _store(memory: PhysicalMemory, pa: int, value: int) -> None:
    memory.write(pa, (value & UINT_MASK).to_bytes(4, "little"))


def _zeroed_page(memory: PhysicalMemory) -> int:
    pa = memory.kalloc()
    if pa is None:
        raise MemoryError("out of physical pages")
    memory.write(pa, bytes(PGSIZE))
    return pa


class PageDirectory:
    """A page directory rooted at a physical page."""

    def __init__(self, memory: PhysicalMemory, root: int):
        self.memory = memory
        self.root = root
        self.kernel_data: Optional[int] = None

    def walk(self, va: int, alloc: bool = False) -> Optional[int]:
        """Physical address of the PTE for va, creating its table when alloc is set."""
        pde_pa = self.root + 4 * pdx(va)
        pde = _load(self.memory, pde_pa)
        if pde & PTE_P:
            table = pte_addr(pde)
        else:
            if not alloc:
                return None
            table = self.memory.kalloc()
            if table is None:
                return None
            self.memory.write(table, bytes(PGSIZE))
            _store(self.memory, pde_pa, table | PTE_P | PTE_W | PTE_U)
        return table + 4 * ptx(va)

    def map_pages(self, va: int, size: int, pa: int, perm: int) -> None:
        """Map size bytes at va to physical memory at pa."""
        if size <= 0:
            raise ValueError("size must be positive")
        a = pg_round_down(va)
        last = pg_round_down(va + size - 1)
        while True:
            pte = self.walk(a, True)
            if pte is None:
                raise MemoryError("out of memory for page tables")
            if _load(self.memory, pte) & PTE_P:
                raise KernelPanic("remap")
            _store(self.memory, pte, pa | perm | PTE_P)
            if a == last:
                break
            a += PGSIZE
            pa += PGSIZE

    def init_uvm(self, init: bytes) -> None:
        """Load init, shorter than a page, at virtual address 0."""
        if len(init) >= PGSIZE:
            raise KernelPanic("inituvm: more than a page")
        mem = _zeroed_page(self.memory)
        self.map_pages(0, PGSIZE, mem, PTE_W | PTE_U)
        self.memory.write(mem, init)

    def load_uvm(self, addr: int, data: bytes, offset: int, sz: int) -> None:
        """Copy sz bytes of data from offset into already mapped pages at addr."""
        if addr % PGSIZE:
            raise KernelPanic("loaduvm: addr must be page aligned")
        for i in range(0, sz, PGSIZE):
            pte = self.walk(addr + i, False)
            if pte is None:
                raise KernelPanic("loaduvm: address should exist")
            pa = pte_addr(_load(self.memory, pte))
            n = min(sz - i, PGSIZE)
            chunk = data[offset + i:offset + i + n]
            if len(chunk) != n:
                raise ValueError("segment extends past the end of the data")
            self.memory.write(pa, chunk)

    def alloc_uvm(self, oldsz: int, newsz: int) -> int:
        """Grow user memory from oldsz to newsz and return the new size."""
        if newsz >= KERNBASE:
            raise ValueError("user memory would reach kernel space")
        if newsz < oldsz:
            return oldsz
        for a in range(pg_round_up(oldsz), newsz, PGSIZE):
            mem = self.memory.kalloc()
            if mem is None:
                self.dealloc_uvm(newsz, oldsz)
                raise MemoryError("allocuvm out of memory")
            self.memory.write(mem, bytes(PGSIZE))
            try:
                self.map_pages(a, PGSIZE, mem, PTE_W | PTE_U)
            except MemoryError:
                self.dealloc_uvm(newsz, oldsz)
                self.memory.kfree(mem)
                raise
        return newsz

    def dealloc_uvm(self, oldsz: int, newsz: int) -> int:
        """Shrink user memory from oldsz to newsz and return the new size."""
        if newsz >= oldsz:
            return oldsz
        a = pg_round_up(newsz)
        while a < oldsz:
            pte = self.walk(a, False)
            if pte is None:
                a = ((pdx(a) + 1) << PDXSHIFT) - PGSIZE
            else:
                entry = _load(self.memory, pte)
                if entry & PTE_P:
                    pa = pte_addr(entry)
                    if pa == 0:
                        raise KernelPanic("kfree")
                    self.memory.kfree(pa)
                    _store(self.memory, pte, 0)
            a += PGSIZE
        return newsz

    def free(self) -> None:
        """Release all user pages, every page table and the directory itself."""
        self.dealloc_uvm(KERNBASE, 0)
        entries = struct.unpack(f"<{NPDENTRIES}I", self.memory.read(self.root, PGSIZE))
        for pde in entries:
            if pde & PTE_P:
                self.memory.kfree(pte_addr(pde))
        self.memory.kfree(self.root)

    def clear_pte_u(self, uva: int) -> None:
        """Make the page at uva inaccessible to user code."""
        pte = self.walk(uva, False)
        if pte is None:
            raise KernelPanic("clearpteu")
        _store(self.memory, pte, _load(self.memory, pte) & ~PTE_U)

    def copy(self, sz: int) -> "PageDirectory":
        """A new directory holding a copy of the first sz bytes of user memory."""
        if self.kernel_data is not None:
            child = setup_kvm(self.memory, self.kernel_data)
        else:
            child = PageDirectory(self.memory, _zeroed_page(self.memory))
        for i in range(0, sz, PGSIZE):
            pte = self.walk(i, False)
            if pte is None:
                raise KernelPanic("copyuvm: pte should exist")
            entry = _load(self.memory, pte)
            if not entry & PTE_P:
                raise KernelPanic("copyuvm: page not present")
            mem = self.memory.kalloc()
            if mem is None:
                child.free()
                raise MemoryError("out of memory copying user pages")
            self.memory.write(mem, self.memory.read(pte_addr(entry), PGSIZE))
            try:
                child.map_pages(i, PGSIZE, mem, pte_flags(entry))
            except MemoryError:
                self.memory.kfree(mem)
                child.free()
                raise
        return child

    def uva2ka(self, uva: int) -> Optional[int]:
        """Physical address of the user page holding uva, or None."""
        pte = self.walk(uva, False)
        if pte is None:
            return None
        entry = _load(self.memory, pte)
        if not entry & PTE_P or not entry & PTE_U:
            return None
        return pte_addr(entry)

    def copyout(self, va: int, data: bytes) -> None:
        """Copy data to user virtual address va."""
        buf = bytes(data)
        pos = 0
        while pos < len(buf):
            va0 = pg_round_down(va)
            pa0 = self.uva2ka(va0)
            if pa0 is None:
                raise ValueError(f"user address {va:#x} is not mapped")
            n = min(PGSIZE - (va - va0), len(buf) - pos)
            self.memory.write(pa0 + (va - va0), buf[pos:pos + n])
            pos += n
            va = va0 + PGSIZE


def _kmap(data_start: int):
    return (
        (KERNBASE, 0, EXTMEM, PTE_W),
        (KERNLINK, v2p(KERNLINK), v2p(data_start), 0),
        (data_start, v2p(data_start), PHYSTOP, PTE_W),
        (DEVSPACE, DEVSPACE, 0, PTE_W),
    )


def setup_kvm(memory: PhysicalMemory, data_start: int) -> PageDirectory:
    """A new page directory holding the kernel's mappings.

    data_start is the kernel virtual address where writable kernel data begins.
    """
    if not KERNLINK < data_start < p2v(PHYSTOP):
        raise ValueError("kernel data must start above the kernel text")
    if p2v(PHYSTOP) > DEVSPACE:
        raise KernelPanic("PHYSTOP too high")
    pgdir = PageDirectory(memory, _zeroed_page(memory))
    pgdir.kernel_data = data_start
    for virt, start, end, perm in _kmap(data_start):
        try:
            pgdir.map_pages(virt, (end - start) & UINT_MASK, start, perm)
        except MemoryError:
            pgdir.free()
            raise
    return pgdir