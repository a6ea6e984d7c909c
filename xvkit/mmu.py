"""x86 paging helpers and segment/gate descriptor encodings."""

from __future__ import annotations

import struct
from dataclasses import dataclass, fields

from xvkit.constants import UINT_MASK

# Eflags register.
FL_IF = 0x00000200

# Control register flags.
CR0_PE = 0x00000001
CR0_WP = 0x00010000
CR0_PG = 0x80000000
CR4_PSE = 0x00000010

# Segment selectors.
SEG_KCODE = 1
SEG_KDATA = 2
SEG_UCODE = 3
SEG_UDATA = 4
SEG_TSS = 5
NSEGS = 6

DPL_USER = 0x3

# Application segment type bits.
STA_X = 0x8
STA_W = 0x2
STA_R = 0x2

# System segment type bits.
STS_T32A = 0x9
STS_IG32 = 0xE
STS_TG32 = 0xF

# Paging.
NPDENTRIES = 1024
NPTENTRIES = 1024
PGSIZE = 4096
PTXSHIFT = 12
PDXSHIFT = 22

PTE_P = 0x001
PTE_W = 0x002
PTE_U = 0x004
PTE_PS = 0x080


def pdx(va: int) -> int:
    """Page directory index of a virtual address."""
    return ((va & UINT_MASK) >> PDXSHIFT) & 0x3FF


def ptx(va: int) -> int:
    """Page table index of a virtual address."""
    return ((va & UINT_MASK) >> PTXSHIFT) & 0x3FF


def pgaddr(d: int, t: int, o: int) -> int:
    """Build a virtual address from directory index, table index and offset."""
    return ((d << PDXSHIFT) | (t << PTXSHIFT) | o) & UINT_MASK


def pg_round_up(sz: int) -> int:
    """Round a size up to a page boundary."""
    return (sz + PGSIZE - 1) & ~(PGSIZE - 1) & UINT_MASK


def pg_round_down(addr: int) -> int:
    """Round an address down to a page boundary."""
    return addr & ~(PGSIZE - 1) & UINT_MASK


def pte_addr(pte: int) -> int:
    """Physical address held in a page table entry."""
    return pte & UINT_MASK & ~0xFFF


def pte_flags(pte: int) -> int:
    """Flag bits of a page table entry."""
    return pte & 0xFFF


def _check_widths(obj, layout) -> None:
    for name, width in layout:
        value = getattr(obj, name)
        if not 0 <= value < (1 << width):
            raise ValueError(f"{name}={value} does not fit in {width} bits")


def _pack(obj, layout) -> bytes:
    value = 0
    shift = 0
    for name, width in layout:
        value |= getattr(obj, name) << shift
        shift += width
    return value.to_bytes(8, "little")


def _unpack(data: bytes, layout) -> dict:
    if len(data) != 8:
        raise ValueError("a descriptor is exactly 8 bytes")
    value = int.from_bytes(data, "little")
    result = {}
    for name, width in layout:
        result[name] = value & ((1 << width) - 1)
        value >>= width
    return result


@dataclass(frozen=True)
class SegmentDescriptor:
    """A GDT segment descriptor, field by field."""

    lim_15_0: int = 0
    base_15_0: int = 0
    base_23_16: int = 0
    type: int = 0
    s: int = 0
    dpl: int = 0
    p: int = 0
    lim_19_16: int = 0
    avl: int = 0
    rsv1: int = 0
    db: int = 0
    g: int = 0
    base_31_24: int = 0

    _WIDTHS = (16, 16, 8, 4, 1, 2, 1, 4, 1, 1, 1, 1, 8)

    @classmethod
    def _layout(cls):
        return list(zip((f.name for f in fields(cls)), cls._WIDTHS))

    def __post_init__(self):
        _check_widths(self, self._layout())

    def pack(self) -> bytes:
        """Encode the descriptor as its 8 in-memory bytes."""
        return _pack(self, self._layout())

    @classmethod
    def unpack(cls, data: bytes) -> "SegmentDescriptor":
        """Decode 8 bytes into a descriptor."""
        return cls(**_unpack(bytes(data), cls._layout()))


@dataclass(frozen=True)
class GateDescriptor:
    """An IDT interrupt or trap gate, field by field."""

    off_15_0: int = 0
    cs: int = 0
    args: int = 0
    rsv1: int = 0
    type: int = 0
    s: int = 0
    dpl: int = 0
    p: int = 0
    off_31_16: int = 0

    _WIDTHS = (16, 16, 5, 3, 4, 1, 2, 1, 16)

    @classmethod
    def _layout(cls):
        return list(zip((f.name for f in fields(cls)), cls._WIDTHS))

    def __post_init__(self):
        _check_widths(self, self._layout())

    def pack(self) -> bytes:
        """Encode the gate as its 8 in-memory bytes."""
        return _pack(self, self._layout())

    @classmethod
    def unpack(cls, data: bytes) -> "GateDescriptor":
        """Decode 8 bytes into a gate."""
        return cls(**_unpack(bytes(data), cls._layout()))


def seg(type_: int, base: int, limit: int, dpl: int) -> SegmentDescriptor:
    """Normal 32-bit segment with 4K granularity."""
    base &= UINT_MASK
    limit &= UINT_MASK
    return SegmentDescriptor(
        lim_15_0=(limit >> 12) & 0xFFFF,
        base_15_0=base & 0xFFFF,
        base_23_16=(base >> 16) & 0xFF,
        type=type_ & 0xF,
        s=1,
        dpl=dpl & 0x3,
        p=1,
        lim_19_16=(limit >> 28) & 0xF,
        avl=0,
        rsv1=0,
        db=1,
        g=1,
        base_31_24=(base >> 24) & 0xFF,
    )


def seg16(type_: int, base: int, limit: int, dpl: int) -> SegmentDescriptor:
    """Segment with byte granularity, as used for the TSS."""
    base &= UINT_MASK
    limit &= UINT_MASK
    return SegmentDescriptor(
        lim_15_0=limit & 0xFFFF,
        base_15_0=base & 0xFFFF,
        base_23_16=(base >> 16) & 0xFF,
        type=type_ & 0xF,
        s=1,
        dpl=dpl & 0x3,
        p=1,
        lim_19_16=(limit >> 16) & 0xF,
        avl=0,
        rsv1=0,
        db=1,
        g=0,
        base_31_24=(base >> 24) & 0xFF,
    )


def seg_asm(type_: int, base: int, limit: int) -> bytes:
    """Bytes of a boot-time segment descriptor, as the assembler emits them."""
    base &= UINT_MASK
    limit &= UINT_MASK
    return struct.pack(
        "<HHBBBB",
        (limit >> 12) & 0xFFFF,
        base & 0xFFFF,
        (base >> 16) & 0xFF,
        (0x90 | type_) & 0xFF,
        0xC0 | ((limit >> 28) & 0xF),
        (base >> 24) & 0xFF,
    )


def seg_null_asm() -> bytes:
    """Bytes of the null segment descriptor."""
    return bytes(8)


def set_gate(istrap: bool, sel: int, off: int, dpl: int) -> GateDescriptor:
    """Build an interrupt gate, or a trap gate when istrap is true."""
    off &= UINT_MASK
    return GateDescriptor(
        off_15_0=off & 0xFFFF,
        cs=sel & 0xFFFF,
        args=0,
        rsv1=0,
        type=STS_TG32 if istrap else STS_IG32,
        s=0,
        dpl=dpl & 0x3,
        p=1,
        off_31_16=off >> 16,
    )