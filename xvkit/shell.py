"""Parsing of shell command lines into command trees."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from xvkit.constants import OpenFlag

MAXARGS = 10
"""Arguments an exec command may hold, counting one slot for the terminator."""

WHITESPACE = " \t\r\n\v"
SYMBOLS = "<|>&;()"


class ShellSyntaxError(ValueError):
    """A command line could not be parsed."""

    def __init__(self, message: str, leftovers: Optional[str] = None):
        super().__init__(message)
        self.leftovers = leftovers


@dataclass
class ExecCmd:
    """Run a program; an empty argv means do nothing."""

    argv: list[str] = field(default_factory=list)


@dataclass
class RedirCmd:
    """Run cmd with descriptor fd reopened on file using the given open mode."""

    cmd: "Command"
    file: str
    mode: int
    fd: int


@dataclass
class PipeCmd:
    """Run left and right with left's output feeding right's input."""

    left: "Command"
    right: "Command"


@dataclass
class ListCmd:
    """Run left to completion, then right."""

    left: "Command"
    right: "Command"


@dataclass
class BackCmd:
    """Run cmd without waiting for it."""

    cmd: "Command"


Command = Union[ExecCmd, RedirCmd, PipeCmd, ListCmd, BackCmd]

_WORD = "a"
_APPEND = "+"
_END = ""


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def _skip_space(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in WHITESPACE:
            self.pos += 1

    def token(self) -> tuple[str, str]:
        """Consume one token; return its kind and its text."""
        self._skip_space()
        start = self.pos
        if self.pos >= len(self.text):
            return _END, ""
        ch = self.text[self.pos]
        if ch in "|();&<":
            kind = ch
            self.pos += 1
        elif ch == ">":
            kind = ">"
            self.pos += 1
            if self.pos < len(self.text) and self.text[self.pos] == ">":
                kind = _APPEND
                self.pos += 1
        else:
            kind = _WORD
            while (
                self.pos < len(self.text)
                and self.text[self.pos] not in WHITESPACE
                and self.text[self.pos] not in SYMBOLS
            ):
                self.pos += 1
        word = self.text[start:self.pos]
        self._skip_space()
        return kind, word

    def peek(self, toks: str) -> bool:
        self._skip_space()
        return self.pos < len(self.text) and self.text[self.pos] in toks

    def line(self) -> Command:
        cmd = self.pipe()
        while self.peek("&"):
            self.token()
            cmd = BackCmd(cmd)
        if self.peek(";"):
            self.token()
            cmd = ListCmd(cmd, self.line())
        return cmd

    def pipe(self) -> Command:
        cmd = self.exec()
        if self.peek("|"):
            self.token()
            cmd = PipeCmd(cmd, self.pipe())
        return cmd

    def redirs(self, cmd: Command) -> Command:
        while self.peek("<>"):
            kind, _ = self.token()
            file_kind, name = self.token()
            if file_kind != _WORD:
                raise ShellSyntaxError("missing file for redirection")
            if kind == "<":
                cmd = RedirCmd(cmd, name, OpenFlag.RDONLY, 0)
            else:
                cmd = RedirCmd(cmd, name, OpenFlag.WRONLY | OpenFlag.CREATE, 1)
        return cmd

    def block(self) -> Command:
        if not self.peek("("):
            raise ShellSyntaxError("parseblock")
        self.token()
        cmd = self.line()
        if not self.peek(")"):
            raise ShellSyntaxError("syntax - missing )")
        self.token()
        return self.redirs(cmd)

    def exec(self) -> Command:
        if self.peek("("):
            return self.block()
        node = ExecCmd()
        ret = self.redirs(node)
        while not self.peek("|)&;"):
            kind, word = self.token()
            if kind == _END:
                break
            if kind != _WORD:
                raise ShellSyntaxError("syntax")
            node.argv.append(word)
            if len(node.argv) >= MAXARGS:
                raise ShellSyntaxError("too many args")
            ret = self.redirs(ret)
        return ret


def parse_command(line: str) -> Command:
    """Parse one command line into its command tree."""
    parser = _Parser(line)
    cmd = parser.line()
    parser.peek("")
    if parser.pos != len(line):
        raise ShellSyntaxError("syntax", leftovers=line[parser.pos:])
    return cmd


def cd_target(line: str) -> Optional[str]:
    """Directory named by a "cd " line as read (its last character, the newline, dropped), else None."""
    if not line.startswith("cd "):
        return None
    return line[3:len(line) - 1]