# xvkit

Plain-Python models of the core pieces of a small Unix-like teaching kernel
for 32-bit x86: paging, descriptor tables, ELF headers, locking, system-call
dispatch, a user-space allocator, a shell command parser and a `wc` tool.
It is meant for studying how these parts fit together without an emulator.
It has no dependencies outside the standard library.

## Modules

- `xvkit.constants` — kernel parameters (`NPROC`, `NOFILE`, `MAXARG`, ...),
  the memory layout (`KERNBASE`, `PHYSTOP`, `DEVSPACE`, ...), `v2p` / `p2v`,
  the enums `OpenFlag`, `FileType`, `Syscall`, `Trap` and `Irq`, the records
  `Stat` and `RtcDate`, and the `KernelPanic` exception raised wherever the
  kernel would panic.
- `xvkit.mmu` — page-table helpers (`pdx`, `ptx`, `pgaddr`, `pg_round_up`,
  `pg_round_down`, `pte_addr`, `pte_flags`), `SegmentDescriptor` and
  `GateDescriptor` with 8-byte `pack` / `unpack`, the builders `seg`, `seg16`
  and `set_gate`, and `seg_asm` / `seg_null_asm` for boot-time descriptor
  bytes.
- `xvkit.cstring` — NUL-terminated string and memory routines: `memset`,
  `memcmp`, `memmove`, `strlen`, `strcmp`, `strncmp`, `strncpy`,
  `safestrcpy`, `strchr`, `atoi` and `gets` (reads one line from a stream).
- `xvkit.elf` — `ElfHeader` and `ProgramHeader` parsing and packing,
  `ElfHeader.is_valid`, `ElfHeader.program_headers`, and the `ProgFlag` bits.
- `xvkit.umalloc` — `Heap`, a first-fit, address-ordered free-list allocator
  over a break that grows with `sbrk`; `malloc` returns an address or `None`
  when the limit is reached, and `free_blocks` lists the free list.
- `xvkit.vm` — `PhysicalMemory` (page allocator plus byte storage; page 0 is
  never handed out) and `PageDirectory`, a two-level page table living in
  that memory, with `walk`, `map_pages`, `init_uvm`, `load_uvm`, `alloc_uvm`,
  `dealloc_uvm`, `copy`, `clear_pte_u`, `uva2ka`, `copyout` and `free`.
  `setup_kvm` builds a directory holding the kernel mappings.
- `xvkit.locks` — `SpinLock` (also a context manager), `SleepLock` and
  `CpuState` with nested `push_cli` / `pop_cli`; `current_cpu()` gives each
  thread its own CPU state.
- `xvkit.syscall` — `TrapFrame`, `UserProcess` (user memory is a
  `bytearray` from address 0) with `fetch_int`, `fetch_str`, `arg_int`,
  `arg_ptr` and `arg_str`, a tick `Clock`, and `SyscallTable`, whose
  `dispatch` runs the call named in `eax` and writes the result back
  (`-1` on `SyscallError` or an unknown number). `standard_table(clock)`
  provides `getpid`, `sbrk`, `sleep` and `uptime`.
- `xvkit.trap` — `build_idt` creates the 256 gates, and `TrapDispatcher`
  routes system calls, timer ticks, registered device interrupts and faults,
  returning a `TrapOutcome` (`RESUME`, `YIELD` or `EXIT`).
- `xvkit.shell` — `parse_command` turns a command line into a tree of
  `ExecCmd`, `RedirCmd`, `PipeCmd`, `ListCmd` and `BackCmd`, raising
  `ShellSyntaxError` on bad input; `cd_target` extracts the directory of a
  `cd` line.
- `xvkit.wc` — `count` returns a `WordCount` of lines, words and bytes.

## Installing

    pip install .

## Examples

Parse a shell line:

    from xvkit.shell import parse_command

    tree = parse_command("cat < in.txt | wc > out.txt &\n")
    print(tree)

Map and grow a user address space:

    from xvkit.vm import PhysicalMemory, setup_kvm

    memory = PhysicalMemory(4 * 1024 * 1024)
    pgdir = setup_kvm(memory, 0x80108000)
    size = pgdir.alloc_uvm(0, 8192)
    pgdir.copyout(100, b"hello")

Count lines, words and bytes:

    from xvkit.wc import count

    with open("notes.txt", "rb") as stream:
        result = count(stream)
    print(result.lines, result.words, result.chars)

## Command line

`xvkit-wc` prints line, word and byte counts for each file named, or for
standard input when none is given:

    xvkit-wc README.md

## What it does not do

xvkit is a set of models, not a running kernel. It has no file system, no
disk or console drivers, no process table, scheduler, `fork` or `exec`, and
no file-related system calls; the standard system-call table holds only
`getpid`, `sbrk`, `sleep` and `uptime`. The shell module parses command
lines but does not run them.

## Running the tests

    pip install ".[test]"
    pytest