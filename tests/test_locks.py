import threading
import time

import pytest

from xvkit.constants import KernelPanic
from xvkit.locks import CpuState, SleepLock, SpinLock, current_cpu


def test_acquire_release_holding():
    lk = SpinLock("test")
    assert not lk.holding()
    lk.acquire()
    assert lk.holding()
    assert lk.locked
    assert lk.cpu is current_cpu()
    lk.release()
    assert not lk.holding()
    assert not lk.locked
    assert lk.cpu is None


def test_double_acquire_panics_and_keeps_state():
    lk = SpinLock("twice")
    lk.acquire()
    with pytest.raises(KernelPanic, match="^acquire$"):
        lk.acquire()
    assert current_cpu().ncli == 1
    lk.release()
    assert current_cpu().ncli == 0
    assert current_cpu().interrupts


def test_release_unheld_panics():
    lk = SpinLock("never")
    with pytest.raises(KernelPanic, match="^release$"):
        lk.release()


def test_context_manager_disables_interrupts():
    lk = SpinLock("ctx")
    cpu = current_cpu()
    with lk:
        assert not cpu.interrupts
        assert cpu.ncli == 1
        assert lk.holding()
    assert cpu.interrupts
    assert cpu.ncli == 0


def test_pcs_recorded_while_held():
    lk = SpinLock("pcs")
    with lk:
        assert 0 < len(lk.pcs) <= 10
    assert lk.pcs == []


def test_push_pop_nesting():
    cpu = CpuState()
    cpu.push_cli()
    cpu.push_cli()
    cpu.pop_cli()
    assert not cpu.interrupts
    assert cpu.ncli == 1
    cpu.pop_cli()
    assert cpu.interrupts
    assert cpu.ncli == 0


def test_interrupts_stay_off_when_they_were_off():
    cpu = CpuState(interrupts=False)
    cpu.push_cli()
    cpu.pop_cli()
    assert not cpu.interrupts


def test_pop_cli_underflow_panics():
    with pytest.raises(KernelPanic, match="^popcli$"):
        CpuState(interrupts=False).pop_cli()


def test_pop_cli_with_interrupts_on_panics():
    with pytest.raises(KernelPanic, match="interruptible"):
        CpuState().pop_cli()


def test_each_thread_has_its_own_cpu():
    seen = []

    def other():
        cpu = current_cpu()
        cpu.push_cli()
        seen.append(cpu.ncli)
        cpu.pop_cli()

    main_cpu = current_cpu()
    main_cpu.push_cli()
    t = threading.Thread(target=other)
    t.start()
    t.join()
    assert current_cpu().ncli == 1
    main_cpu.pop_cli()
    assert current_cpu().ncli == 0
    assert seen == [1]


def test_other_thread_does_not_hold():
    lk = SpinLock("shared")
    result = []
    with lk:
        t = threading.Thread(target=lambda: result.append(lk.holding()))
        t.start()
        t.join()
        assert lk.holding() is True
    assert lk.holding() is False
    assert result == [False]


def test_spinlock_excludes_concurrent_updates():
    lk = SpinLock("counter")
    total = {"n": 0}

    def work():
        for _ in range(2000):
            with lk:
                value = total["n"]
                total["n"] = value + 1

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert total["n"] == 4 * 2000
    assert lk.holding() is False
    assert current_cpu().ncli == 0


def test_sleeplock_holding_by_pid():
    sl = SleepLock("buf")
    sl.acquire(3)
    assert sl.holding(3)
    assert not sl.holding(4)
    assert sl.pid == 3
    sl.release()
    assert not sl.holding(3)
    assert sl.pid == 0


def test_sleeplock_waiter_blocks_until_release():
    sl = SleepLock("inode")
    sl.acquire(1)
    got = threading.Event()

    def waiter():
        sl.acquire(2)
        got.set()

    t = threading.Thread(target=waiter)
    t.start()
    time.sleep(0.05)
    assert not got.is_set()
    assert sl.holding(1)
    sl.release()
    t.join(timeout=5)
    assert got.is_set()
    assert sl.holding(2)
    sl.release()