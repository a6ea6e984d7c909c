import pytest

from xvkit.umalloc import HEADER_SIZE, MIN_UNITS, Heap


def test_first_malloc_grows_by_minimum():
    heap = Heap()
    heap.malloc(10)
    assert heap.brk == MIN_UNITS * HEADER_SIZE


def test_blocks_do_not_overlap_and_fit_heap():
    heap = Heap()
    sizes = [1, 7, 8, 100, 513, 4000]
    spans = []
    for size in sizes:
        ap = heap.malloc(size)
        assert ap is not None
        assert ap >= HEADER_SIZE
        assert ap + size <= heap.brk
        spans.append((ap - HEADER_SIZE, ap + size))
    spans.sort()
    for (_, end), (start, _) in zip(spans, spans[1:]):
        assert end <= start


def test_free_everything_coalesces_to_one_block():
    heap = Heap()
    ptrs = [heap.malloc(n) for n in (30, 200, 5, 1000, 64)]
    for ap in (ptrs[2], ptrs[0], ptrs[4], ptrs[1], ptrs[3]):
        heap.free(ap)
    assert heap.free_blocks() == [(0, heap.brk)]


def test_free_then_malloc_reuses_address():
    heap = Heap()
    a = heap.malloc(40)
    heap.free(a)
    assert heap.malloc(40) == a


def test_free_blocks_sum_with_allocations_equals_break():
    heap = Heap()
    ptrs = [heap.malloc(n) for n in (16, 24, 100)]
    heap.free(ptrs[1])
    used = sum(((n + HEADER_SIZE - 1) // HEADER_SIZE + 1) * HEADER_SIZE for n in (16, 100))
    free_total = sum(size for _, size in heap.free_blocks())
    assert free_total + used == heap.brk


def test_large_request_grows_exactly():
    heap = Heap()
    nbytes = (MIN_UNITS + 10) * HEADER_SIZE
    ap = heap.malloc(nbytes)
    assert ap is not None
    assert heap.brk == nbytes + HEADER_SIZE


def test_out_of_memory_returns_none():
    heap = Heap(limit=1024)
    assert heap.malloc(1) is None
    assert heap.brk == 0


def test_free_unknown_pointer():
    heap = Heap()
    heap.malloc(8)
    with pytest.raises(ValueError):
        heap.free(12345)


def test_double_free():
    heap = Heap()
    a = heap.malloc(8)
    heap.free(a)
    with pytest.raises(ValueError):
        heap.free(a)


def test_negative_size():
    with pytest.raises(ValueError):
        Heap().malloc(-1)


def test_sbrk_returns_old_break_and_respects_limit():
    heap = Heap(limit=100)
    assert heap.sbrk(40) == 0
    assert heap.sbrk(0) == 40
    with pytest.raises(MemoryError):
        heap.sbrk(61)
    with pytest.raises(MemoryError):
        heap.sbrk(-41)


def test_free_blocks_empty_before_use():
    assert Heap().free_blocks() == []