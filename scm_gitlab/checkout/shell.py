"""
Shell 片段拼装。

- `ShellScript`：不可变、只追加的片段序列，最后一次性用 ` && ` 拼接（任一步失败即中止）
- 其余函数生成单个片段（条件、export、git 调用等），输出完全由输入决定
"""

from __future__ import annotations

import shlex
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

STEP_SEPARATOR = " && "
# 运行时选择 git 执行方式：macOS 直接 eval，其它平台走 sandbox 的 git step
GIT_WRAPPER_VAR = "$SD_GIT_WRAPPER"


@dataclass(frozen=True)
class ShellScript:
    fragments: tuple[str, ...] = ()

    def then(self, *fragments: str) -> ShellScript:
        return ShellScript(fragments=self.fragments + fragments)

    def extend(self, fragments: Iterable[str]) -> ShellScript:
        return ShellScript(fragments=self.fragments + tuple(fragments))

    def render(self) -> str:
        return STEP_SEPARATOR.join(self.fragments)


def quote(value: str) -> str:
    return shlex.quote(value)


def git_quote(value: str) -> str:
    """
    引用放进 `git(...)` 参数里的值。

    wrapper 参数本身在双引号里，外层 shell 会先展开 `$`、反引号并处理 `\\` 和 `"`，
    wrapper 再把整串交给 shell 执行。所以先按内层 shell 引用，再转义成双引号内的字面量。
    """
    return "".join(f"\\{char}" if char in '\\"$`' else char for char in quote(value))


def _body(statements: str | Sequence[str]) -> str:
    if isinstance(statements, str):
        return statements
    return "; ".join(statements)


def if_then(condition: str, then: str | Sequence[str]) -> str:
    return f"if {condition}; then {_body(then)}; fi"


def if_else(condition: str, then: str | Sequence[str], otherwise: str | Sequence[str]) -> str:
    return f"if {condition}; then {_body(then)}; else {_body(otherwise)}; fi"


def if_chain(branches: Sequence[tuple[str, str | Sequence[str]]], otherwise: str | Sequence[str]) -> str:
    """if / elif ... / else。branches 至少一个。"""
    (first_condition, first_body), *rest = branches
    parts = [f"if {first_condition}; then {_body(first_body)}"]
    parts.extend(f"elif {condition}; then {_body(body)}" for condition, body in rest)
    parts.append(f"else {_body(otherwise)}; fi")
    return "; ".join(parts)


def is_set(var: str) -> str:
    return f'[ ! -z "${var}" ]'


def is_unset(var: str) -> str:
    return f'[ -z "${var}" ]'


def equals(var: str, value: str) -> str:
    """变量已设置且等于 value。"""
    return f'{is_set(var)} && [ "${var}" = {value} ]'


def export(name: str, value: str) -> str:
    """value 原样输出（可包含 $VAR 引用），需要转义的值由调用方处理。"""
    return f"export {name}={value}"


def echo(message: str) -> str:
    return f"echo {quote(message)}"


def git(args: str) -> str:
    """通过 $SD_GIT_WRAPPER 执行 git；args 中的 $VAR 在 wrapper 执行时展开。"""
    return f'{GIT_WRAPPER_VAR} "git {args}"'


def cd(path: str) -> str:
    return f"cd {quote(path)}"
