"""
错误类型。

- `BadRequestError`：调用方给的输入结构不对（缺 header、URL 无法解析等），对应 HTTP 400
- `ScmApiError`：GitLab REST 调用失败，携带状态码，便于上游按 4xx/5xx 分类处理
"""

from __future__ import annotations


class ScmError(RuntimeError):
    """adapter 抛出的所有错误的基类。"""

    pass


class BadRequestError(ScmError):
    """输入结构非法（客户端错误）。"""

    status_code = 400


class ScmApiError(ScmError):
    """GitLab API 返回非 2xx，或网络层失败。"""

    def __init__(self, status_code: int, reason: str, caller: str) -> None:
        self.status_code = status_code
        self.reason = reason
        self.caller = caller
        super().__init__(f'{status_code} Reason "{reason}" Caller "{caller}"')
