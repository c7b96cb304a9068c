"""
仓库标识解析（与 SCM provider 无关）。

两种输入：
- checkout URL：`https://host[:port]/owner/repo[.git][#branch[:rootDir]]`，也支持 `git@host:owner/repo.git`
- scm URI：平台持久化的仓库 key，`hostname:repoId:branch[:rootDir]`

这里只做字符串解析，不发请求；分支缺省值（仓库默认分支）由调用方补齐。
"""

from __future__ import annotations

import re

from pydantic import BaseModel

from scm_gitlab.errors import BadRequestError

# owner 贪婪匹配到最后一个 "/"，以支持 GitLab 的 subgroup（group/sub/repo）
CHECKOUT_URL_PATTERN = re.compile(
    r"^(?:(?:https?|ssh|git)://(?:[^@/\s]+@)?|[^@/\s:]+@)"
    r"(?P<hostname>[^/:\s]+(?::\d+)?)[/:]"
    r"(?P<owner>[^#\s]+)/(?P<repo>[^/#\s]+?)(?:\.git)?"
    r"(?:#(?P<branch>[^:\s]+)(?::(?P<root_dir>\S+))?)?$"
)


class RepoReference(BaseModel):
    """仓库 + 分支 + 子目录。hostname 一定存在；root_dir 为不带前导 "/" 的相对路径。"""

    hostname: str
    owner: str
    repo_name: str
    branch: str | None = None
    root_dir: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo_name}"


class ScmUri(BaseModel):
    """scm URI 的各部分（repo_id 对 GitLab 来说是 project id）。"""

    hostname: str
    repo_id: str
    branch: str
    root_dir: str | None = None

    def __str__(self) -> str:
        return build_scm_uri(hostname=self.hostname, repo_id=self.repo_id, branch=self.branch, root_dir=self.root_dir)


def normalize_root_dir(root_dir: str | None) -> str | None:
    """去掉前后 "/"；空字符串视为未指定。"""
    if root_dir is None:
        return None
    normalized = root_dir.strip().strip("/")
    return normalized or None


def parse_checkout_url(checkout_url: str) -> RepoReference:
    """
    解析 checkout URL。

    - 分支写在 `#` 后面，子目录写在分支后的 `:` 后面
    - 无法解析时抛 `BadRequestError`
    """
    matched = CHECKOUT_URL_PATTERN.match(checkout_url.strip())
    if matched is None:
        raise BadRequestError(f"Invalid checkout url: {checkout_url}")
    return RepoReference(
        hostname=matched.group("hostname"),
        owner=matched.group("owner"),
        repo_name=matched.group("repo"),
        branch=matched.group("branch"),
        root_dir=normalize_root_dir(matched.group("root_dir")),
    )


def parse_scm_uri(scm_uri: str) -> ScmUri:
    """解析 `hostname:repoId:branch[:rootDir]`。rootDir 里允许再出现 ":"。"""
    parts = scm_uri.split(":", 3)
    if len(parts) < 3 or not all(parts[:3]):
        raise BadRequestError(f"Invalid scm uri: {scm_uri}")
    hostname, repo_id, branch = parts[:3]
    root_dir = parts[3] if len(parts) == 4 else None
    return ScmUri(hostname=hostname, repo_id=repo_id, branch=branch, root_dir=normalize_root_dir(root_dir))


def build_scm_uri(hostname: str, repo_id: str, branch: str, root_dir: str | None = None) -> str:
    uri = f"{hostname}:{repo_id}:{branch}"
    normalized = normalize_root_dir(root_dir)
    if normalized:
        uri = f"{uri}:{normalized}"
    return uri
