"""
GitLab SCM adapter（平台调用的统一入口）。

- 同步、无 I/O：`can_handle_webhook` / `parse_hook` / `get_checkout_command`
- 异步、走 GitLab REST：仓库解析、webhook 注册、commit 状态、文件读取、装饰信息等

adapter 实例不保存任何请求级状态；配置在构造后不可变，可并发调用。
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import BaseModel

from scm_gitlab.checkout.command import build_checkout_command
from scm_gitlab.checkout.plan import CheckoutCommand
from scm_gitlab.checkout.plan import CheckoutPlan
from scm_gitlab.config import GitLabScmConfig
from scm_gitlab.errors import BadRequestError
from scm_gitlab.events import NormalizedWebhookEvent
from scm_gitlab.gitlab.client import GitLabClient
from scm_gitlab.gitlab.webhook import can_handle_webhook
from scm_gitlab.gitlab.webhook import parse_hook
from scm_gitlab.repo.reference import RepoReference
from scm_gitlab.repo.reference import build_scm_uri
from scm_gitlab.repo.reference import normalize_root_dir
from scm_gitlab.repo.reference import parse_checkout_url
from scm_gitlab.repo.reference import parse_scm_uri

logger = logging.getLogger(__name__)

# build 状态 -> GitLab commit status state
STATE_MAP: dict[str, str] = {
    "SUCCESS": "success",
    "RUNNING": "running",
    "QUEUED": "pending",
    "BLOCKED": "pending",
    "ABORTED": "canceled",
}
DESCRIPTION_MAP: dict[str, str] = {
    "SUCCESS": "Everything looks good!",
    "FAILURE": "Did not work as expected.",
    "ABORTED": "Aborted mid-flight",
    "RUNNING": "Testing your code...",
    "QUEUED": "Looking for a place to park...",
    "BLOCKED": "Waiting for a blocking build...",
}


class DecoratedAuthor(BaseModel):
    avatar: str
    name: str
    username: str
    url: str


DEFAULT_AUTHOR = DecoratedAuthor(
    avatar="https://cd.screwdriver.cd/assets/unknown_user.png",
    name="n/a",
    username="n/a",
    url="https://cd.screwdriver.cd/",
)


class DecoratedUrl(BaseModel):
    branch: str
    name: str
    url: str
    root_dir: str = ""


class DecoratedCommit(BaseModel):
    author: DecoratedAuthor
    message: str
    url: str


class OpenedPullRequest(BaseModel):
    name: str
    ref: str
    username: str
    title: str
    created_at: str
    url: str


class GitLabScm:
    """GitLab 实现的 SCM adapter。"""

    def __init__(self, config: GitLabScmConfig, http_client: httpx.AsyncClient) -> None:
        self.config = config
        self._client = GitLabClient(base_url=config.api_base_url, http_client=http_client, retry=config.fusebox)

    @property
    def scm_context(self) -> str:
        return self.config.scm_context

    def get_scm_contexts(self) -> list[str]:
        return [self.scm_context]

    def can_handle_webhook(self, headers: Mapping[str, str], payload: Any) -> bool:
        return can_handle_webhook(headers=headers, payload=payload, scm_context=self.scm_context)

    def parse_hook(self, headers: Mapping[str, str], payload: Any) -> NormalizedWebhookEvent | None:
        return parse_hook(headers=headers, payload=payload, scm_context=self.scm_context)

    def get_checkout_command(self, plan: CheckoutPlan) -> CheckoutCommand:
        return build_checkout_command(plan=plan, config=self.config)

    def stats(self) -> dict[str, int]:
        return self._client.stats()

    def _web_url(self, path: str) -> str:
        return f"{self.config.gitlab_protocol}://{self.config.gitlab_host}/{path}"

    async def parse_url(self, checkout_url: str, token: str, root_dir: str | None = None) -> str:
        """
        checkout URL -> scm URI（`hostname:projectId:branch[:rootDir]`）。

        - 只接受当前配置的 GitLab host
        - URL 里没写分支时，用仓库默认分支
        - 显式传入的 root_dir 优先于 URL 里的
        """
        repo = parse_checkout_url(checkout_url)
        if repo.hostname != self.config.gitlab_host:
            raise BadRequestError(f"This checkoutUrl is not supported for your current login host: {repo.hostname}")

        project = await self._client.get_project(repo.full_name, token=token)
        branch = repo.branch or project.default_branch
        if not branch:
            raise BadRequestError(f"Cannot determine branch for {checkout_url}")
        return build_scm_uri(
            hostname=repo.hostname,
            repo_id=str(project.id),
            branch=branch,
            root_dir=normalize_root_dir(root_dir) or repo.root_dir,
        )

    async def lookup_scm_uri(self, scm_uri: str, token: str) -> RepoReference:
        """scm URI -> RepoReference（owner/repo 名从 GitLab 查）。"""
        parts = parse_scm_uri(scm_uri)
        project = await self._client.get_project(parts.repo_id, token=token)
        owner, repo_name = project.path_with_namespace.rsplit("/", 1)
        return RepoReference(
            hostname=parts.hostname,
            owner=owner,
            repo_name=repo_name,
            branch=parts.branch,
            root_dir=parts.root_dir,
        )

    async def add_webhook(self, scm_uri: str, token: str, webhook_url: str) -> None:
        """已存在同 URL 的 hook 就更新，否则新建。"""
        parts = parse_scm_uri(scm_uri)
        hooks = await self._client.list_hooks(parts.repo_id, token=token)
        existing = next((hook for hook in hooks if hook.url == webhook_url), None)
        await self._client.save_hook(
            parts.repo_id,
            url=webhook_url,
            token=token,
            hook_id=existing.id if existing else None,
        )

    async def get_commit_sha(self, scm_uri: str, token: str, ref: str | None = None) -> str:
        parts = parse_scm_uri(scm_uri)
        if ref:
            commit = await self._client.get_commit(parts.repo_id, sha=ref, token=token)
            return commit.id
        branch = await self._client.get_branch(parts.repo_id, branch=parts.branch, token=token)
        return branch.commit.id

    async def update_commit_status(
        self,
        scm_uri: str,
        sha: str,
        build_status: str,
        token: str,
        url: str,
        job_name: str | None = None,
    ) -> None:
        parts = parse_scm_uri(scm_uri)
        context = f"Screwdriver/{job_name}" if job_name else "Screwdriver"
        await self._client.create_commit_status(
            parts.repo_id,
            sha=sha,
            state=STATE_MAP.get(build_status, "failed"),
            context=context,
            description=DESCRIPTION_MAP.get(build_status, ""),
            target_url=url,
            token=token,
        )

    async def get_file(self, scm_uri: str, path: str, token: str, ref: str | None = None) -> str:
        """读取文件内容；没给 ref 时用 scm URI 里的分支。rootDir 会拼到路径前面。"""
        parts = parse_scm_uri(scm_uri)
        file_path = f"{parts.root_dir}/{path}" if parts.root_dir else path
        repository_file = await self._client.get_file(parts.repo_id, file_path=file_path, ref=ref or parts.branch, token=token)
        if repository_file.encoding == "base64":
            return base64.b64decode(repository_file.content).decode("utf-8")
        return repository_file.content

    async def decorate_url(self, scm_uri: str, token: str) -> DecoratedUrl:
        repo = await self.lookup_scm_uri(scm_uri, token=token)
        branch = repo.branch or ""
        return DecoratedUrl(
            branch=branch,
            name=repo.full_name,
            url=self._web_url(f"{repo.full_name}/tree/{branch}"),
            root_dir=repo.root_dir or "",
        )

    async def decorate_author(self, username: str, token: str) -> DecoratedAuthor:
        users = await self._client.find_users(username, token=token)
        if not users or not users[0].username:
            return DEFAULT_AUTHOR
        author = users[0]
        return DecoratedAuthor(avatar=author.avatar_url, name=author.name, username=author.username, url=author.web_url)

    async def decorate_commit(self, scm_uri: str, sha: str, token: str) -> DecoratedCommit:
        repo = await self.lookup_scm_uri(scm_uri, token=token)
        parts = parse_scm_uri(scm_uri)
        commit = await self._client.get_commit(parts.repo_id, sha=sha, token=token)
        author = DEFAULT_AUTHOR
        if commit.author_name:
            author = await self.decorate_author(commit.author_name, token=token)
        return DecoratedCommit(
            author=author,
            message=commit.message,
            url=self._web_url(f"{repo.full_name}/tree/{sha}"),
        )

    async def get_opened_prs(self, scm_uri: str, token: str) -> list[OpenedPullRequest]:
        parts = parse_scm_uri(scm_uri)
        merge_requests = await self._client.list_open_merge_requests(parts.repo_id, token=token)
        return [
            OpenedPullRequest(
                name=f"PR-{mr.iid}",
                ref=f"merge-requests/{mr.iid}/head",
                username=mr.author.username,
                title=mr.title,
                created_at=mr.created_at,
                url=mr.web_url,
            )
            for mr in merge_requests
        ]

    async def add_pr_comment(self, scm_uri: str, pr_num: int, comment: str, token: str) -> int:
        """在 MR 下发一条评论，返回 note id。"""
        parts = parse_scm_uri(scm_uri)
        note = await self._client.post_merge_request_note(parts.repo_id, mr_iid=pr_num, body=comment, token=token)
        logger.info(f"Posted comment on merge request !{pr_num} of project {parts.repo_id}")
        return note.id
