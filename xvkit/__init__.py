"""Models of a small x86 teaching kernel: paging, descriptors, ELF headers, locks, syscalls, an allocator, a shell parser and wc."""

__version__ = "0.1.0"

__all__ = [
    "constants",
    "mmu",
    "cstring",
    "elf",
    "umalloc",
    "vm",
    "locks",
    "syscall",
    "trap",
    "shell",
    "wc",
]