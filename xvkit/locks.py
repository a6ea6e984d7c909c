"""Spin locks with nested interrupt disabling, and sleeping locks."""

from __future__ import annotations

import threading
import traceback
from dataclasses import dataclass, field
from typing import Optional

from xvkit.constants import KernelPanic

_MAX_PCS = 10


@dataclass(eq=False)
class CpuState:
    """Per-CPU interrupt bookkeeping: nesting depth and saved interrupt state."""

    ncli: int = 0
    intena: bool = False
    interrupts: bool = True

    def push_cli(self) -> None:
        """Disable interrupts; matched by pop_cli, and nestable."""
        enabled = self.interrupts
        self.interrupts = False
        if self.ncli == 0:
            self.intena = enabled
        self.ncli += 1

    def pop_cli(self) -> None:
        """Undo one push_cli; re-enable interrupts when the outermost one ends."""
        if self.interrupts:
            raise KernelPanic("popcli - interruptible")
        if self.ncli <= 0:
            raise KernelPanic("popcli")
        self.ncli -= 1
        if self.ncli == 0 and self.intena:
            self.interrupts = True


_local = threading.local()


def current_cpu() -> CpuState:
    """The CPU state of the calling thread; each thread acts as one CPU."""
    cpu = getattr(_local, "cpu", None)
    if cpu is None:
        cpu = CpuState()
        _local.cpu = cpu
    return cpu


def _caller_pcs() -> list[str]:
    frames = traceback.extract_stack()[:-3]
    return [f"{f.filename}:{f.lineno}" for f in reversed(frames)][:_MAX_PCS]


class SpinLock:
    """A mutual-exclusion lock held with interrupts disabled on its CPU."""

    def __init__(self, name: str):
        self.name = name
        self.cpu: Optional[CpuState] = None
        self.pcs: list[str] = []
        self._lock = threading.Lock()

    @property
    def locked(self) -> bool:
        """Whether some CPU holds the lock."""
        return self._lock.locked()

    def acquire(self) -> None:
        """Take the lock, waiting until it is free."""
        cpu = current_cpu()
        cpu.push_cli()
        if self.holding():
            cpu.pop_cli()
            raise KernelPanic("acquire")
        self._lock.acquire()
        self.cpu = cpu
        self.pcs = _caller_pcs()

    def release(self) -> None:
        """Give the lock up."""
        if not self.holding():
            raise KernelPanic("release")
        self.pcs = []
        self.cpu = None
        self._lock.release()
        current_cpu().pop_cli()

    def holding(self) -> bool:
        """Whether the calling CPU holds the lock."""
        cpu = current_cpu()
        cpu.push_cli()
        result = self._lock.locked() and self.cpu is cpu
        cpu.pop_cli()
        return result

    def __enter__(self) -> "SpinLock":
        self.acquire()
        return self

    def __exit__(self, *args) -> None:
        self.release()


class SleepLock:
    """A long-term lock whose waiters sleep instead of spinning."""

    def __init__(self, name: str):
        self.name = name
        self.lk = SpinLock("sleep lock")
        self.locked = False
        self.pid = 0
        self._chan = threading.Condition(threading.Lock())

    def acquire(self, pid: int) -> None:
        """Take the lock on behalf of process pid, sleeping while it is held."""
        self.lk.acquire()
        while self.locked:
            with self._chan:
                self.lk.release()
                self._chan.wait()
            self.lk.acquire()
        self.locked = True
        self.pid = pid
        self.lk.release()

    def release(self) -> None:
        """Give the lock up and wake every sleeper."""
        with self.lk:
            self.locked = False
            self.pid = 0
            with self._chan:
                self._chan.notify_all()

    def holding(self, pid: int) -> bool:
        """Whether process pid holds the lock."""
        with self.lk:
            return self.locked and self.pid == pid