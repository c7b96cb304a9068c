from __future__ import annotations

from scm_gitlab.checkout.shell import ShellScript
from scm_gitlab.checkout.shell import cd
from scm_gitlab.checkout.shell import echo
from scm_gitlab.checkout.shell import equals
from scm_gitlab.checkout.shell import git
from scm_gitlab.checkout.shell import git_quote
from scm_gitlab.checkout.shell import if_chain
from scm_gitlab.checkout.shell import if_else
from scm_gitlab.checkout.shell import if_then


def test_shell_script_is_append_only() -> None:
    base = ShellScript().then("a")
    extended = base.then("b").extend(["c"])
    assert base.render() == "a"
    assert extended.render() == "a && b && c"


def test_if_else_joins_statement_lists() -> None:
    fragment = if_else("[ -z $X ]", ["export A=1", "export B=2"], "export A=0")
    assert fragment == "if [ -z $X ]; then export A=1; export B=2; else export A=0; fi"


def test_if_then() -> None:
    assert if_then("[ -z $X ]", "export X=1") == "if [ -z $X ]; then export X=1; fi"


def test_if_chain() -> None:
    fragment = if_chain([("c1", "b1"), ("c2", "b2")], "b3")
    assert fragment == "if c1; then b1; elif c2; then b2; else b3; fi"


def test_equals_requires_variable_to_be_set() -> None:
    assert equals("GIT_SHALLOW_CLONE", "false") == '[ ! -z "$GIT_SHALLOW_CLONE" ] && [ "$GIT_SHALLOW_CLONE" = false ]'


def test_git_runs_through_wrapper() -> None:
    assert git("submodule init") == '$SD_GIT_WRAPPER "git submodule init"'


def test_echo_and_cd_quote_arguments() -> None:
    assert echo("Reset to abc") == "echo 'Reset to abc'"
    assert cd("src/app") == "cd src/app"
    assert cd("my dir") == "cd 'my dir'"


def test_git_quote_escapes_for_wrapper_argument() -> None:
    assert git_quote("main") == "main"
    assert git_quote("rel$HOME-x") == "'rel\\$HOME-x'"
    assert git_quote("a`id`b") == "'a\\`id\\`b'"
    assert git_quote("it's") == "'it'\\\"'\\\"'s'"
