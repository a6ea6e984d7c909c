import pytest

from xvkit.constants import OpenFlag
from xvkit.shell import (
    MAXARGS,
    BackCmd,
    ExecCmd,
    ListCmd,
    PipeCmd,
    RedirCmd,
    ShellSyntaxError,
    cd_target,
    parse_command,
)

WRITE = OpenFlag.WRONLY | OpenFlag.CREATE


def test_simple_exec():
    assert parse_command("echo hello world\n") == ExecCmd(["echo", "hello", "world"])


def test_empty_line_is_empty_exec():
    assert parse_command("   \n") == ExecCmd([])


def test_pipe_is_right_associative():
    assert parse_command("a | b | c") == PipeCmd(
        ExecCmd(["a"]), PipeCmd(ExecCmd(["b"]), ExecCmd(["c"]))
    )


def test_list():
    assert parse_command("a ; b") == ListCmd(ExecCmd(["a"]), ExecCmd(["b"]))


def test_trailing_semicolon_gives_empty_right():
    assert parse_command("a;") == ListCmd(ExecCmd(["a"]), ExecCmd([]))


def test_background():
    assert parse_command("sleep &") == BackCmd(ExecCmd(["sleep"]))


def test_double_background():
    assert parse_command("x & &") == BackCmd(BackCmd(ExecCmd(["x"])))


def test_background_then_list():
    assert parse_command("a & ; b") == ListCmd(BackCmd(ExecCmd(["a"])), ExecCmd(["b"]))


def test_word_after_background_is_leftover():
    with pytest.raises(ShellSyntaxError) as info:
        parse_command("a & b")
    assert info.value.leftovers == "b"


def test_input_redirection():
    assert parse_command("cat < in") == RedirCmd(
        ExecCmd(["cat"]), "in", OpenFlag.RDONLY, 0
    )


def test_output_and_append_use_same_mode():
    out = parse_command("echo x > f")
    app = parse_command("echo x >> f")
    assert out == app == RedirCmd(ExecCmd(["echo", "x"]), "f", WRITE, 1)


def test_redirections_nest_last_outermost():
    assert parse_command("cat < a > b") == RedirCmd(
        RedirCmd(ExecCmd(["cat"]), "a", OpenFlag.RDONLY, 0), "b", WRITE, 1
    )


def test_redirection_before_words():
    assert parse_command("> out echo hi") == RedirCmd(
        ExecCmd(["echo", "hi"]), "out", WRITE, 1
    )


def test_symbols_split_words():
    assert parse_command("ls>f") == RedirCmd(ExecCmd(["ls"]), "f", WRITE, 1)


def test_block_with_redirection():
    assert parse_command("(a; b) > out") == RedirCmd(
        ListCmd(ExecCmd(["a"]), ExecCmd(["b"])), "out", WRITE, 1
    )


def test_block_in_pipe():
    assert parse_command("(a | b) | c") == PipeCmd(
        PipeCmd(ExecCmd(["a"]), ExecCmd(["b"])), ExecCmd(["c"])
    )


def test_missing_close_paren():
    with pytest.raises(ShellSyntaxError, match="missing \\)"):
        parse_command("(echo a")


def test_missing_redirection_file():
    with pytest.raises(ShellSyntaxError, match="missing file"):
        parse_command("echo >")


def test_redirection_to_symbol():
    with pytest.raises(ShellSyntaxError, match="missing file"):
        parse_command("echo > |")


def test_stray_close_paren_is_leftover():
    with pytest.raises(ShellSyntaxError) as info:
        parse_command("echo hi)")
    assert info.value.leftovers == ")"


def test_open_paren_among_words():
    with pytest.raises(ShellSyntaxError):
        parse_command("echo (")


def test_argument_limit():
    words = [f"w{i}" for i in range(MAXARGS - 1)]
    assert parse_command(" ".join(words)) == ExecCmd(words)
    with pytest.raises(ShellSyntaxError, match="too many args"):
        parse_command(" ".join(words + ["extra"]))


def test_cd_target():
    assert cd_target("cd /usr\n") == "/usr"


def test_cd_target_not_cd():
    assert cd_target("cdx foo\n") is None
    assert cd_target("echo cd \n") is None


def test_cd_target_drops_last_character():
    assert cd_target("cd dir") == "di"