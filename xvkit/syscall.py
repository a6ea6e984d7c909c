"""System call argument fetching, dispatch and the process-level calls."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Optional

from xvkit.constants import KERNBASE, UINT_MASK, Syscall


@dataclass
class TrapFrame:
    """Registers saved on the kernel stack when a trap enters the kernel."""

    edi: int = 0
    esi: int = 0
    ebp: int = 0
    oesp: int = 0
    ebx: int = 0
    edx: int = 0
    ecx: int = 0
    eax: int = 0
    gs: int = 0
    fs: int = 0
    es: int = 0
    ds: int = 0
    trapno: int = 0
    err: int = 0
    eip: int = 0
    cs: int = 0
    eflags: int = 0
    esp: int = 0
    ss: int = 0


class SyscallError(Exception):
    """A system call failed; the caller sees -1."""


def _signed(value: int) -> int:
    value &= UINT_MASK
    return value - (1 << 32) if value & 0x80000000 else value


class UserProcess:
    """A process whose user memory is a byte array starting at address 0."""

    def __init__(self, pid: int, name: str, memory: bytearray, tf: Optional[TrapFrame] = None):
        self.pid = pid
        self.name = name
        self.memory = memory
        self.tf = tf if tf is not None else TrapFrame()
        self.killed = False
        self.running = True

    @property
    def sz(self) -> int:
        """Size of user memory in bytes."""
        return len(self.memory)

    def fetch_int(self, addr: int) -> int:
        """The 32-bit signed integer at user address addr."""
        addr &= UINT_MASK
        if addr >= self.sz or addr + 4 > self.sz:
            raise SyscallError(f"bad address {addr:#x}")
        return int.from_bytes(self.memory[addr:addr + 4], "little", signed=True)

    def fetch_str(self, addr: int) -> bytes:
        """The NUL-terminated string at user address addr, without its NUL."""
        addr &= UINT_MASK
        if addr >= self.sz:
            raise SyscallError(f"bad address {addr:#x}")
        end = self.memory.find(0, addr)
        if end < 0:
            raise SyscallError("string not terminated inside user memory")
        return bytes(self.memory[addr:end])

    def arg_int(self, n: int) -> int:
        """The nth 32-bit system call argument."""
        return self.fetch_int(self.tf.esp + 4 + 4 * n)

    def arg_ptr(self, n: int, size: int) -> int:
        """The nth argument as the address of size bytes of user memory."""
        addr = self.arg_int(n) & UINT_MASK
        if size < 0 or addr >= self.sz or addr + size > self.sz:
            raise SyscallError("pointer outside user memory")
        return addr

    def arg_str(self, n: int) -> bytes:
        """The nth argument as a NUL-terminated user string."""
        return self.fetch_str(self.arg_int(n))


class Clock:
    """The tick counter advanced by the timer interrupt."""

    def __init__(self):
        self._ticks = 0
        self._cond = threading.Condition()

    def tick(self) -> None:
        """Advance by one tick and wake sleepers."""
        with self._cond:
            self._ticks = (self._ticks + 1) & UINT_MASK
            self._cond.notify_all()

    def uptime(self) -> int:
        """Ticks since start."""
        with self._cond:
            return self._ticks

    def sleep(self, n: int, killed: Optional[Callable[[], bool]] = None) -> None:
        """Wait for n ticks; raise SyscallError if killed() turns true meanwhile."""
        target = n & UINT_MASK
        with self._cond:
            ticks0 = self._ticks
            while (self._ticks - ticks0) & UINT_MASK < target:
                if killed is not None and killed():
                    raise SyscallError("killed while sleeping")
                self._cond.wait()


Handler = Callable[[UserProcess], int]


class SyscallTable:
    """Maps system call numbers to handlers and dispatches on %eax."""

    def __init__(self):
        self._handlers: dict[int, Handler] = {}

    def register(self, num: int, handler: Handler) -> None:
        """Install handler for call number num."""
        if num <= 0:
            raise ValueError("system call numbers start at 1")
        self._handlers[int(num)] = handler

    def dispatch(self, proc: UserProcess) -> int:
        """Run the call named in proc.tf.eax and store its result back in eax."""
        tf = proc.tf
        num = _signed(tf.eax)
        handler = self._handlers.get(num) if num > 0 else None
        if handler is None:
            print(f"{proc.pid} {proc.name}: unknown sys call {num}")
            result = -1
        else:
            try:
                result = handler(proc)
            except SyscallError:
                result = -1
        tf.eax = result & UINT_MASK
        return result


def _sys_getpid(proc: UserProcess) -> int:
    return proc.pid


def _grow(proc: UserProcess, n: int) -> None:
    sz = proc.sz
    newsz = (sz + n) & UINT_MASK
    if n > 0:
        if newsz >= KERNBASE:
            raise SyscallError("cannot grow into kernel space")
        proc.memory.extend(bytes(newsz - sz))
    elif n < 0 and newsz < sz:
        del proc.memory[newsz:]


def _sys_sbrk(proc: UserProcess) -> int:
    n = proc.arg_int(0)
    addr = proc.sz
    _grow(proc, n)
    return addr


def standard_table(clock: Clock) -> SyscallTable:
    """A table holding getpid, sbrk, sleep and uptime."""

    def sys_sleep(proc: UserProcess) -> int:
        n = proc.arg_int(0)
        clock.sleep(n, lambda: proc.killed)
        return 0

    def sys_uptime(proc: UserProcess) -> int:
        return clock.uptime()

    table = SyscallTable()
    table.register(Syscall.GETPID, _sys_getpid)
    table.register(Syscall.SBRK, _sys_sbrk)
    table.register(Syscall.SLEEP, sys_sleep)
    table.register(Syscall.UPTIME, sys_uptime)
    return table