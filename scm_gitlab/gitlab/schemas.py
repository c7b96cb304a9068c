"""
GitLab Webhook / API response schemas（Pydantic）。

为什么要单独放 schema：
- GitLab 的 payload 结构复杂，直接用 dict 容易写错 key
- 缺省值在反序列化时一次性补齐（空列表/空字符串），业务逻辑里不再到处判空

说明：
- 字段只覆盖 adapter 需要的子集；GitLab 新增字段会被忽略
- 可能缺失的字段一律声明为可选，真正必需的字段缺失会校验失败
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


def _list_or_empty(value: Any) -> Any:
    # 部分 delivery 会省略数组或给 null
    return value if isinstance(value, list) else []


def _str_or_empty(value: Any) -> Any:
    return "" if value is None else value


def _object_or_empty(value: Any) -> Any:
    # 子结构给 null（例如 fork 已删除的 MR source）时按空对象处理
    return {} if value is None else value


class GitLabUser(BaseModel):
    """Webhook 里的 user 子结构。"""

    username: str = ""
    name: str = ""

    @field_validator("username", "name", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return _str_or_empty(value)


class GitLabProjectRef(BaseModel):
    """Webhook 里的 project / source / target 子结构。"""

    id: int | None = None
    git_http_url: str = ""
    git_ssh_url: str = ""
    web_url: str = ""
    path_with_namespace: str = ""

    @field_validator("git_http_url", "git_ssh_url", "web_url", "path_with_namespace", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return _str_or_empty(value)


class GitLabLastCommit(BaseModel):
    id: str
    message: str = ""

    @field_validator("message", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return _str_or_empty(value)


class GitLabMergeRequestObjectAttributes(BaseModel):
    """Merge request webhook 的 object_attributes 子结构。"""

    iid: int
    title: str = ""
    state: str
    action: str | None = None
    source_project_id: int | None = None
    target_project_id: int | None = None
    source_branch: str
    target_branch: str
    last_commit: GitLabLastCommit
    source: GitLabProjectRef = Field(default_factory=GitLabProjectRef)
    target: GitLabProjectRef = Field(default_factory=GitLabProjectRef)

    @field_validator("title", mode="before")
    @classmethod
    def _null_title(cls, value: Any) -> Any:
        return _str_or_empty(value)

    @field_validator("source", "target", mode="before")
    @classmethod
    def _null_project(cls, value: Any) -> Any:
        return _object_or_empty(value)


class GitLabMergeRequestWebhookEvent(BaseModel):
    """Merge request webhook（object_kind = merge_request）。"""

    object_kind: Literal["merge_request"]
    user: GitLabUser = Field(default_factory=GitLabUser)
    project: GitLabProjectRef = Field(default_factory=GitLabProjectRef)
    object_attributes: GitLabMergeRequestObjectAttributes

    @field_validator("user", "project", mode="before")
    @classmethod
    def _null_object(cls, value: Any) -> Any:
        return _object_or_empty(value)


class GitLabCommitAuthor(BaseModel):
    name: str = ""
    email: str = ""

    @field_validator("name", "email", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return _str_or_empty(value)


class GitLabPushCommit(BaseModel):
    """Push webhook 里 commits[] 的单个元素。"""

    id: str = ""
    message: str = ""
    author: GitLabCommitAuthor = Field(default_factory=GitLabCommitAuthor)
    added: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)

    @field_validator("id", "message", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return _str_or_empty(value)

    @field_validator("author", mode="before")
    @classmethod
    def _null_author(cls, value: Any) -> Any:
        return _object_or_empty(value)

    @field_validator("added", "modified", "removed", mode="before")
    @classmethod
    def _paths_or_empty(cls, value: Any) -> Any:
        return _list_or_empty(value)


class GitLabPushWebhookEvent(BaseModel):
    """Push webhook（object_kind = push）。tag push 等同形 payload 靠 event_name 区分。"""

    object_kind: Literal["push"]
    event_name: str = ""
    ref: str
    checkout_sha: str | None = None
    user_name: str = ""
    user_username: str = ""
    project: GitLabProjectRef = Field(default_factory=GitLabProjectRef)
    commits: list[GitLabPushCommit] = Field(default_factory=list)

    @field_validator("event_name", "user_name", "user_username", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return _str_or_empty(value)

    @field_validator("project", mode="before")
    @classmethod
    def _null_project(cls, value: Any) -> Any:
        return _object_or_empty(value)

    @field_validator("commits", mode="before")
    @classmethod
    def _commits_or_empty(cls, value: Any) -> Any:
        return _list_or_empty(value)


class GitLabProject(BaseModel):
    """GET /projects/:id 返回结构。"""

    id: int
    path_with_namespace: str
    default_branch: str | None = None
    web_url: str = ""


class GitLabHook(BaseModel):
    id: int
    url: str


class GitLabCommitRef(BaseModel):
    id: str


class GitLabBranch(BaseModel):
    name: str
    commit: GitLabCommitRef


class GitLabCommit(BaseModel):
    id: str
    message: str = ""
    author_name: str = ""
    author_email: str = ""


class GitLabUserInfo(BaseModel):
    """GET /users?username= 返回的单个用户。"""

    username: str = ""
    name: str = ""
    avatar_url: str = ""
    web_url: str = ""


class GitLabCommitStatus(BaseModel):
    id: int
    status: str


class GitLabRepositoryFile(BaseModel):
    file_path: str
    content: str
    encoding: str = "base64"


class GitLabMergeRequest(BaseModel):
    """GET /projects/:id/merge_requests 的单个元素。"""

    iid: int
    title: str = ""
    source_branch: str
    target_branch: str
    created_at: str = ""
    web_url: str = ""
    author: GitLabUser = Field(default_factory=GitLabUser)


class GitLabNote(BaseModel):
    """MR note 返回结构。"""

    id: int
    body: str
