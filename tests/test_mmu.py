import pytest

from xvkit.mmu import (
    DPL_USER,
    PGSIZE,
    PTE_P,
    PTE_U,
    PTE_W,
    STA_R,
    STA_W,
    STA_X,
    STS_IG32,
    STS_T32A,
    STS_TG32,
    GateDescriptor,
    SegmentDescriptor,
    pdx,
    pg_round_down,
    pg_round_up,
    pgaddr,
    pte_addr,
    pte_flags,
    ptx,
    seg,
    seg16,
    seg_asm,
    seg_null_asm,
    set_gate,
)


@pytest.mark.parametrize("va", [0, 0x1234, 0x80100000, 0xFFFFFFFF, 0x00403ABC])
def test_pgaddr_reassembles_address(va):
    assert pgaddr(pdx(va), ptx(va), va & 0xFFF) == va


def test_indices_are_in_range():
    for va in (0, 0x7FFFF000, 0xFFFFFFFF):
        assert 0 <= pdx(va) < 1024
        assert 0 <= ptx(va) < 1024


def test_page_rounding():
    assert pg_round_up(1) == PGSIZE
    assert pg_round_up(PGSIZE) == PGSIZE
    assert pg_round_down(PGSIZE + 1) == PGSIZE
    assert pg_round_down(PGSIZE - 1) == 0


def test_pte_split():
    pte = 0x12345000 | PTE_P | PTE_W | PTE_U
    assert pte_addr(pte) | pte_flags(pte) == pte
    assert pte_addr(pte) == 0x12345000
    assert pte_flags(pte) & PTE_U


def test_kernel_code_segment_bytes():
    desc = seg(STA_X | STA_R, 0, 0xFFFFFFFF, 0)
    assert desc.pack() == bytes.fromhex("ffff0000009acf00")


@pytest.mark.parametrize(
    "type_,base,limit",
    [(STA_X | STA_R, 0, 0xFFFFFFFF), (STA_W, 0x12345678, 0x0FFFFFFF)],
)
def test_seg_matches_assembler_form(type_, base, limit):
    assert seg(type_, base, limit, 0).pack() == seg_asm(type_, base, limit)


def test_segment_round_trip():
    desc = seg(STA_W, 0xDEADB000, 0xFFFFFFFF, DPL_USER)
    assert SegmentDescriptor.unpack(desc.pack()) == desc
    assert desc.dpl == DPL_USER


def test_seg16_keeps_byte_granularity():
    desc = seg16(STS_T32A, 0x80112233, 0x67, 0)
    assert desc.g == 0
    assert desc.lim_15_0 == 0x67
    base = desc.base_15_0 | desc.base_23_16 << 16 | desc.base_31_24 << 24
    assert base == 0x80112233


def test_null_descriptor():
    assert seg_null_asm() == bytes(8)
    assert SegmentDescriptor.unpack(seg_null_asm()) == SegmentDescriptor()


def test_gate_types():
    assert set_gate(True, 8, 0x1000, DPL_USER).type == STS_TG32
    assert set_gate(False, 8, 0x1000, 0).type == STS_IG32


def test_gate_offset_and_round_trip():
    gate = set_gate(False, 8, 0x80105ABC, 0)
    assert gate.off_15_0 | gate.off_31_16 << 16 == 0x80105ABC
    assert gate.p == 1 and gate.s == 0
    assert GateDescriptor.unpack(gate.pack()) == gate


def test_field_overflow_rejected():
    with pytest.raises(ValueError):
        SegmentDescriptor(dpl=4)
    with pytest.raises(ValueError):
        GateDescriptor(cs=1 << 16)


def test_unpack_wrong_length_rejected():
    with pytest.raises(ValueError):
        GateDescriptor.unpack(bytes(7))