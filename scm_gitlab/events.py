"""
平台无关的 webhook 事件模型（Pydantic）。

- `type = "pr"`：merge request 事件
- `type = "repo"`：push 事件

Python 侧字段是 snake_case；交给平台时用 `model_dump(by_alias=True)` 得到 camelCase。
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WebhookEventBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    action: Literal["opened", "closed", "push"]
    checkout_url: str
    branch: str
    # 删除分支的 push 没有 checkout_sha
    sha: str | None
    username: str
    # GitLab 的 header/payload 里都没有 hook id
    hook_id: str = ""
    scm_context: str


class PullRequestEvent(_WebhookEventBase):
    """merge request 归一化后的事件。"""

    type: Literal["pr"] = "pr"
    pr_num: int
    pr_title: str
    pr_ref: str
    ref: str
    pr_source: Literal["branch", "fork"]
    pr_branch_name: str
    pr_merged: bool | None = None


class RepoEvent(_WebhookEventBase):
    """push 归一化后的事件。changed files 只取第一个 commit。"""

    type: Literal["repo"] = "repo"
    ref: str
    commit_authors: list[str] = Field(default_factory=list)
    last_commit_message: str = ""
    added_files: list[str] = Field(default_factory=list)
    modified_files: list[str] = Field(default_factory=list)
    removed_files: list[str] = Field(default_factory=list)


NormalizedWebhookEvent = Annotated[Union[PullRequestEvent, RepoEvent], Field(discriminator="type")]
