"""
GitLab API 客户端（外部系统连接器）。

约定：
- 这里只做“HTTP 调用 + 重试 + 错误分类 + schema 校验”，不做业务决策
- 5xx / 网络错误按指数退避重试；4xx 直接失败（重试也不会成功）
- 最终失败抛 `ScmApiError`（携带状态码），不要吞异常
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any
from urllib.parse import quote

import anyio
import httpx

from scm_gitlab.config import RetryConfig
from scm_gitlab.errors import ScmApiError
from scm_gitlab.gitlab.schemas import GitLabBranch
from scm_gitlab.gitlab.schemas import GitLabCommit
from scm_gitlab.gitlab.schemas import GitLabCommitStatus
from scm_gitlab.gitlab.schemas import GitLabHook
from scm_gitlab.gitlab.schemas import GitLabMergeRequest
from scm_gitlab.gitlab.schemas import GitLabNote
from scm_gitlab.gitlab.schemas import GitLabProject
from scm_gitlab.gitlab.schemas import GitLabRepositoryFile
from scm_gitlab.gitlab.schemas import GitLabUserInfo

logger = logging.getLogger(__name__)


@dataclass
class ClientStats:
    """请求计数（供 /stats 观测）。"""

    requests: int = 0
    retries: int = 0
    failures: int = 0


def _error_reason(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        for key in ("message", "error"):
            if body.get(key):
                return str(body[key])
    return response.text


def encode_path_segment(value: str | int) -> str:
    """GitLab 的 project id 可以是 `owner/repo`，文件路径也需要整体编码。"""
    return quote(str(value), safe="")


class GitLabClient:
    """最小 GitLab v4 API client。token 按调用传入（每个用户的 OAuth token 不同）。"""

    def __init__(self, base_url: str, http_client: httpx.AsyncClient, retry: RetryConfig | None = None) -> None:
        """
        - base_url: API 地址（例如 `https://gitlab.com/api/v4`，不包含末尾 /）
        - http_client: 复用的 httpx.AsyncClient
        - retry: 重试参数
        """
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client
        self._retry = retry or RetryConfig()
        self._stats = ClientStats()

    def stats(self) -> dict[str, int]:
        return asdict(self._stats)

    def _delay(self, attempt: int) -> float:
        return min(self._retry.min_timeout * self._retry.factor**attempt, self._retry.max_timeout)

    async def request(
        self,
        method: str,
        path: str,
        token: str | None,
        caller: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """
        发一次 GitLab API 请求，返回 JSON body。

        - 没有 token：直接 403，不发请求
        - 5xx / 网络错误：最多重试 `retries` 次
        - 4xx：立即抛 `ScmApiError`
        """
        if not token:
            raise ScmApiError(status_code=403, reason="Missing token for authentication", caller=caller)

        url = f"{self._base_url}{path}"
        headers = {"Authorization": f"Bearer {token}"}
        attempt = 0
        while True:
            self._stats.requests += 1
            try:
                response = await self._http_client.request(method, url, headers=headers, params=params, json=json)
            except httpx.TransportError as exc:
                status_code, reason = 500, "Internal server error"
                logger.warning(f"GitLab request failed: {method} {path} ({exc!r}), caller={caller}")
            else:
                if response.status_code < 400:
                    if not response.content:
                        return None
                    return response.json()
                status_code, reason = response.status_code, _error_reason(response)
                if status_code < 500:
                    self._stats.failures += 1
                    raise ScmApiError(status_code=status_code, reason=reason, caller=caller)
                logger.warning(f"GitLab API error {status_code}: {method} {path}, caller={caller}")

            if attempt >= self._retry.retries:
                self._stats.failures += 1
                raise ScmApiError(status_code=status_code, reason=reason, caller=caller)
            self._stats.retries += 1
            await anyio.sleep(self._delay(attempt))
            attempt += 1

    async def get_project(self, project: str | int, token: str) -> GitLabProject:
        """GET /projects/:id，`project` 可以是数字 id 或 `owner/repo`。"""
        data = await self.request("GET", f"/projects/{encode_path_segment(project)}", token=token, caller="getProject")
        return GitLabProject.model_validate(data)

    async def list_hooks(self, project_id: str | int, token: str) -> list[GitLabHook]:
        data = await self.request("GET", f"/projects/{encode_path_segment(project_id)}/hooks", token=token, caller="listHooks")
        return [GitLabHook.model_validate(x) for x in data]

    async def save_hook(self, project_id: str | int, url: str, token: str, hook_id: int | None = None) -> GitLabHook:
        """hook_id 为空时创建，否则更新。只订阅 push 和 merge request 事件。"""
        path = f"/projects/{encode_path_segment(project_id)}/hooks"
        method = "POST"
        if hook_id is not None:
            path = f"{path}/{hook_id}"
            method = "PUT"
        payload = {"url": url, "push_events": True, "merge_requests_events": True}
        data = await self.request(method, path, token=token, caller="saveHook", json=payload)
        return GitLabHook.model_validate(data)

    async def get_branch(self, project_id: str | int, branch: str, token: str) -> GitLabBranch:
        path = f"/projects/{encode_path_segment(project_id)}/repository/branches/{encode_path_segment(branch)}"
        data = await self.request("GET", path, token=token, caller="getBranch")
        return GitLabBranch.model_validate(data)

    async def get_commit(self, project_id: str | int, sha: str, token: str) -> GitLabCommit:
        path = f"/projects/{encode_path_segment(project_id)}/repository/commits/{encode_path_segment(sha)}"
        data = await self.request("GET", path, token=token, caller="getCommit")
        return GitLabCommit.model_validate(data)

    async def find_users(self, username: str, token: str) -> list[GitLabUserInfo]:
        data = await self.request("GET", "/users", token=token, caller="findUsers", params={"username": username})
        return [GitLabUserInfo.model_validate(x) for x in data]

    async def create_commit_status(
        self,
        project_id: str | int,
        sha: str,
        state: str,
        context: str,
        description: str,
        target_url: str,
        token: str,
    ) -> GitLabCommitStatus:
        path = f"/projects/{encode_path_segment(project_id)}/statuses/{encode_path_segment(sha)}"
        payload = {"state": state, "name": context, "description": description, "target_url": target_url}
        data = await self.request("POST", path, token=token, caller="createCommitStatus", json=payload)
        return GitLabCommitStatus.model_validate(data)

    async def get_file(self, project_id: str | int, file_path: str, ref: str, token: str) -> GitLabRepositoryFile:
        path = f"/projects/{encode_path_segment(project_id)}/repository/files/{encode_path_segment(file_path)}"
        data = await self.request("GET", path, token=token, caller="getFile", params={"ref": ref})
        return GitLabRepositoryFile.model_validate(data)

    async def list_open_merge_requests(self, project_id: str | int, token: str) -> list[GitLabMergeRequest]:
        path = f"/projects/{encode_path_segment(project_id)}/merge_requests"
        data = await self.request("GET", path, token=token, caller="listOpenMergeRequests", params={"state": "opened"})
        return [GitLabMergeRequest.model_validate(x) for x in data]

    async def post_merge_request_note(self, project_id: str | int, mr_iid: int, body: str, token: str) -> GitLabNote:
        """在 MR 下发布一条全局评论（note）。"""
        path = f"/projects/{encode_path_segment(project_id)}/merge_requests/{mr_iid}/notes"
        data = await self.request("POST", path, token=token, caller="postMergeRequestNote", json={"body": body})
        return GitLabNote.model_validate(data)
