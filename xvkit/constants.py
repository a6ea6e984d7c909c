"""Kernel-wide parameters, flag values and small shared records."""

from __future__ import annotations

import enum
from dataclasses import dataclass

UINT_MASK = 0xFFFFFFFF
"""Mask that reduces an integer to a 32-bit unsigned value."""


class KernelPanic(RuntimeError):
    """Raised wherever the kernel would stop with a panic message."""


# Kernel parameters.
NPROC = 64  # maximum number of processes
KSTACKSIZE = 4096  # size of per-process kernel stack
NCPU = 8  # maximum number of CPUs
NOFILE = 16  # open files per process
NFILE = 100  # open files per system
NINODE = 50  # maximum number of active i-nodes
NDEV = 10  # maximum major device number
ROOTDEV = 1  # device number of file system root disk
MAXARG = 32  # max exec arguments
MAXOPBLOCKS = 10  # max number of blocks any FS op writes
LOGSIZE = MAXOPBLOCKS * 3  # max data blocks in on-disk log
NBUF = MAXOPBLOCKS * 3  # size of disk block cache
FSSIZE = 1000  # size of file system in blocks

# Memory layout.
EXTMEM = 0x100000  # start of extended memory
PHYSTOP = 0xE000000  # top of physical memory
DEVSPACE = 0xFE000000  # other devices live at high addresses
KERNBASE = 0x80000000  # first kernel virtual address
KERNLINK = KERNBASE + EXTMEM  # address where the kernel is linked


def v2p(addr: int) -> int:
    """Translate a kernel virtual address to a physical address."""
    return (addr - KERNBASE) & UINT_MASK


def p2v(addr: int) -> int:
    """Translate a physical address to its kernel virtual address."""
    return (addr + KERNBASE) & UINT_MASK


class OpenFlag(enum.IntFlag):
    """Mode bits accepted by open."""

    RDONLY = 0x000
    WRONLY = 0x001
    RDWR = 0x002
    CREATE = 0x200


class FileType(enum.IntEnum):
    """Kinds of file-system object reported by stat."""

    DIR = 1
    FILE = 2
    DEV = 3


class Syscall(enum.IntEnum):
    """System call numbers."""

    FORK = 1
    EXIT = 2
    WAIT = 3
    PIPE = 4
    READ = 5
    KILL = 6
    EXEC = 7
    FSTAT = 8
    CHDIR = 9
    DUP = 10
    GETPID = 11
    SBRK = 12
    SLEEP = 13
    UPTIME = 14
    OPEN = 15
    WRITE = 16
    MKNOD = 17
    UNLINK = 18
    LINK = 19
    MKDIR = 20
    CLOSE = 21


class Trap(enum.IntEnum):
    """x86 trap numbers and the vectors chosen by the kernel."""

    DIVIDE = 0
    DEBUG = 1
    NMI = 2
    BRKPT = 3
    OFLOW = 4
    BOUND = 5
    ILLOP = 6
    DEVICE = 7
    DBLFLT = 8
    TSS = 10
    SEGNP = 11
    STACK = 12
    GPFLT = 13
    PGFLT = 14
    FPERR = 16
    ALIGN = 17
    MCHK = 18
    SIMDERR = 19
    IRQ0 = 32
    SYSCALL = 64
    DEFAULT = 500


class Irq(enum.IntEnum):
    """Hardware interrupt lines, relative to Trap.IRQ0."""

    TIMER = 0
    KBD = 1
    COM1 = 4
    IDE = 14
    ERROR = 19
    SPURIOUS = 31


@dataclass
class Stat:
    """File metadata as returned by fstat."""

    type: int = 0
    dev: int = 0
    ino: int = 0
    nlink: int = 0
    size: int = 0


@dataclass
class RtcDate:
    """A wall-clock reading from the real-time clock."""

    second: int = 0
    minute: int = 0
    hour: int = 0
    day: int = 0
    month: int = 0
    year: int = 0