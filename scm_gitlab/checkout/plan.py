"""
Checkout 输入/输出模型（Pydantic）。

`CheckoutPlan` 是一次 build 需要的 checkout 参数；字段同时接受 camelCase（平台 JSON）和 snake_case。
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from scm_gitlab.repo.reference import normalize_root_dir

CHECKOUT_STEP_NAME = "sd-checkout-code"


class _PlanModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ParentConfig(_PlanModel):
    """上游 config pipeline 的仓库（模板化/子 pipeline 的 build 配置在这里）。"""

    branch: str
    host: str
    org: str
    repo: str
    sha: str


class CheckoutPlan(_PlanModel):
    branch: str
    commit_branch: str | None = None
    host: str
    org: str
    repo: str
    sha: str
    root_dir: str | None = None
    pr_ref: str | None = None
    pr_source: Literal["branch", "fork"] | None = None
    pr_branch_name: str | None = None
    parent_config: ParentConfig | None = None

    @field_validator("root_dir")
    @classmethod
    def _strip_root_dir(cls, value: str | None) -> str | None:
        return normalize_root_dir(value)

    @property
    def checkout_branch(self) -> str:
        """commit 所在分支优先，其次 pipeline 分支。"""
        return self.commit_branch or self.branch


class CheckoutCommand(BaseModel):
    """交给 build sandbox 执行的单条 shell 命令。"""

    name: str = Field(default=CHECKOUT_STEP_NAME)
    command: str
