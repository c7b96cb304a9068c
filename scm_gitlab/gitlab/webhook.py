"""
GitLab Webhook 接入层。

职责：
- 判定 delivery 是否来自 GitLab（`X-Gitlab-Event` header）
- 按 `object_kind` 分派：merge_request / push，其余一律忽略（返回 None，不是错误）
- 把 GitLab payload 归一化为平台无关的 `PullRequestEvent` / `RepoEvent`
- 提供 FastAPI 路由：校验 `X-Gitlab-Token`，再交给业务 handler

约定：
- “不支持的事件”和“结构非法的 delivery”必须区分：前者返回 None（发送方不会重试），
  后者抛 `BadRequestError`
- `can_handle_webhook` 是唯一把异常折叠成 False 的地方
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from fastapi import APIRouter
from fastapi import HTTPException
from fastapi import Request
from pydantic import ValidationError

from scm_gitlab.errors import BadRequestError
from scm_gitlab.events import NormalizedWebhookEvent
from scm_gitlab.events import PullRequestEvent
from scm_gitlab.events import RepoEvent
from scm_gitlab.gitlab.schemas import GitLabMergeRequestWebhookEvent
from scm_gitlab.gitlab.schemas import GitLabPushWebhookEvent

logger = logging.getLogger(__name__)

EVENT_HEADER = "x-gitlab-event"
TOKEN_HEADER = "x-gitlab-token"

# GitLab MR state -> 平台 action；其它 state（locked/reopened 等）忽略
MERGE_REQUEST_ACTIONS: dict[str, str] = {
    "opened": "opened",
    "closed": "closed",
    "merged": "closed",
}

WebhookHandler = Callable[[NormalizedWebhookEvent], Awaitable[None]]


def _has_header(headers: Mapping[str, str], name: str) -> bool:
    return any(key.lower() == name for key in headers)


def parse_hook(
    headers: Mapping[str, str],
    payload: Any,
    scm_context: str,
) -> NormalizedWebhookEvent | None:
    """
    解析一次 webhook delivery。

    - 缺 `X-Gitlab-Event` header：抛 `BadRequestError`
    - 不关心/不认识的事件：返回 None
    - 认识的事件但 payload 校验失败：抛 `BadRequestError`
    """
    if not _has_header(headers, EVENT_HEADER):
        raise BadRequestError(f"Missing {EVENT_HEADER} header")

    object_kind = payload.get("object_kind") if isinstance(payload, Mapping) else None
    try:
        if object_kind == "merge_request":
            return _parse_merge_request(
                event=GitLabMergeRequestWebhookEvent.model_validate(payload),
                scm_context=scm_context,
            )
        if object_kind == "push":
            return _parse_push(event=GitLabPushWebhookEvent.model_validate(payload), scm_context=scm_context)
    except ValidationError as exc:
        raise BadRequestError(f"Invalid {object_kind} payload: {exc.error_count()} validation error(s)") from exc

    logger.info(f"Unsupported GitLab event kind: {object_kind!r}")
    return None


def _parse_merge_request(event: GitLabMergeRequestWebhookEvent, scm_context: str) -> PullRequestEvent | None:
    mr = event.object_attributes
    action = MERGE_REQUEST_ACTIONS.get(mr.state)
    if action is None:
        logger.info(f"Ignoring merge request !{mr.iid} in state {mr.state!r}")
        return None

    # fork 来的 MR 在 checkout 时需要区分 remote
    pr_source = "branch" if mr.source_project_id == mr.target_project_id else "fork"
    return PullRequestEvent(
        action=action,
        checkout_url=mr.target.git_http_url or event.project.git_http_url,
        branch=mr.target_branch,
        # MR 事件没有顶层 sha，取 last_commit
        sha=mr.last_commit.id,
        username=event.user.username,
        scm_context=scm_context,
        pr_num=mr.iid,
        pr_title=mr.title,
        pr_ref=f"merge-requests/{mr.iid}/head",
        ref=f"pull/{mr.iid}/merge",
        pr_source=pr_source,
        pr_branch_name=mr.source_branch,
        pr_merged=mr.state == "merged" if action == "closed" else None,
    )


def _parse_push(event: GitLabPushWebhookEvent, scm_context: str) -> RepoEvent | None:
    # tag push / system hook 等同形 payload
    if event.event_name != "push":
        logger.info(f"Ignoring push-shaped event {event.event_name!r}")
        return None

    commits = event.commits
    first_commit = commits[0] if commits else None
    return RepoEvent(
        action="push",
        checkout_url=event.project.git_http_url,
        branch=event.ref.split("/")[-1],
        sha=event.checkout_sha,
        username=event.user_username or event.user_name,
        scm_context=scm_context,
        ref=event.ref,
        commit_authors=[commit.author.name for commit in commits],
        last_commit_message=commits[-1].message if commits else "",
        added_files=first_commit.added if first_commit else [],
        modified_files=first_commit.modified if first_commit else [],
        removed_files=first_commit.removed if first_commit else [],
    )


def can_handle_webhook(headers: Mapping[str, str], payload: Any, scm_context: str) -> bool:
    """parse 成功且结果非 None 才算能处理；任何异常都折叠为 False，交给下一个 provider。"""
    try:
        return parse_hook(headers=headers, payload=payload, scm_context=scm_context) is not None
    except Exception:
        logger.error("Failed to run can_handle_webhook", exc_info=True)
        return False


def build_gitlab_webhook_router(
    parse: Callable[[Mapping[str, str], Any], NormalizedWebhookEvent | None],
    handler: WebhookHandler,
    webhook_secret: str | None = None,
) -> APIRouter:
    """创建 GitLab webhook 路由。"""
    router = APIRouter()

    @router.post("/gitlab/webhook")
    async def gitlab_webhook(request: Request) -> dict[str, str]:
        headers = {key.lower(): value for key, value in request.headers.items()}

        # 1) Webhook secret 校验（GitLab UI 里配置）
        if webhook_secret is not None and headers.get(TOKEN_HEADER) != webhook_secret:
            raise HTTPException(status_code=401, detail="Invalid webhook token")

        try:
            payload = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc

        # 2) 结构非法 -> 400；不关心的事件 -> 200 ignored（发送方不会重试）
        try:
            event = parse(headers, payload)
        except BadRequestError as exc:
            raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
        if event is None:
            return {"status": "ignored"}

        # 3) 交给业务 handler
        await handler(event)
        return {"status": "ok"}

    return router
