"""Interrupt descriptor table setup and trap dispatch."""

from __future__ import annotations

import enum
from typing import Callable, Optional, Sequence

from xvkit.constants import Irq, KernelPanic, Trap
from xvkit.mmu import DPL_USER, SEG_KCODE, GateDescriptor, set_gate
from xvkit.syscall import Clock, SyscallTable, TrapFrame, UserProcess

IDT_SIZE = 256

_FIXED_IRQS = frozenset({Irq.TIMER, Irq.IDE + 1, 7, Irq.SPURIOUS})
_DEVICE_IRQS = frozenset({Irq.IDE, Irq.KBD, Irq.COM1})


def build_idt(vectors: Sequence[int]) -> list[GateDescriptor]:
    """The 256 gates: interrupt gates, except a user-callable trap gate for system calls."""
    if len(vectors) != IDT_SIZE:
        raise ValueError(f"expected {IDT_SIZE} vectors, got {len(vectors)}")
    idt = [set_gate(False, SEG_KCODE << 3, v, 0) for v in vectors]
    idt[Trap.SYSCALL] = set_gate(True, SEG_KCODE << 3, vectors[Trap.SYSCALL], DPL_USER)
    return idt


class TrapOutcome(enum.Enum):
    """What the interrupted process should do once trap handling ends."""

    RESUME = "resume"
    YIELD = "yield"
    EXIT = "exit"


class TrapDispatcher:
    """Handles traps on one CPU: system calls, device interrupts and faults."""

    def __init__(self, syscalls: SyscallTable, clock: Clock, cpu_id: int = 0):
        self.syscalls = syscalls
        self.clock = clock
        self.cpu_id = cpu_id
        self.cr2 = 0
        self.eoi_count = 0
        self._irq_handlers: dict[int, Callable[[], None]] = {}

    def register_irq(self, irq: int, handler: Callable[[], None]) -> None:
        """Install the driver routine for a device interrupt line."""
        if irq in _FIXED_IRQS or not 0 <= irq < IDT_SIZE - Trap.IRQ0:
            raise ValueError(f"irq {irq} cannot take a handler")
        self._irq_handlers[irq] = handler

    def _eoi(self) -> None:
        self.eoi_count += 1

    def trap(self, tf: TrapFrame, proc: Optional[UserProcess] = None) -> TrapOutcome:
        """Handle one trap; YIELD means give up the CPU, then check killed again."""
        if tf.trapno == Trap.SYSCALL:
            if proc is None:
                raise KernelPanic("trap")
            if proc.killed:
                return TrapOutcome.EXIT
            proc.tf = tf
            self.syscalls.dispatch(proc)
            return TrapOutcome.EXIT if proc.killed else TrapOutcome.RESUME

        irq = tf.trapno - Trap.IRQ0
        if irq == Irq.TIMER:
            if self.cpu_id == 0:
                self.clock.tick()
            self._eoi()
        elif irq in self._irq_handlers:
            self._irq_handlers[irq]()
            self._eoi()
        elif irq in _DEVICE_IRQS:
            self._eoi()
        elif irq == Irq.IDE + 1:
            pass
        elif irq in (7, Irq.SPURIOUS):
            print(f"cpu{self.cpu_id}: spurious interrupt at {tf.cs:x}:{tf.eip:x}")
            self._eoi()
        else:
            if proc is None or (tf.cs & 3) == 0:
                print(
                    f"unexpected trap {tf.trapno} from cpu {self.cpu_id} "
                    f"eip {tf.eip:x} (cr2=0x{self.cr2:x})"
                )
                raise KernelPanic("trap")
            print(
                f"pid {proc.pid} {proc.name}: trap {tf.trapno} err {tf.err} "
                f"on cpu {self.cpu_id} eip 0x{tf.eip:x} addr 0x{self.cr2:x}--kill proc"
            )
            proc.killed = True

        if proc is not None and proc.killed and (tf.cs & 3) == DPL_USER:
            return TrapOutcome.EXIT
        if proc is not None and proc.running and tf.trapno == Trap.IRQ0 + Irq.TIMER:
            return TrapOutcome.YIELD
        return TrapOutcome.RESUME