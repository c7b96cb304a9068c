"""
FastAPI 服务入口。

这里做三件事：
- 加载配置（严格校验环境变量）
- 组装外部依赖（HTTP Client / GitLabScm adapter）
- 装配路由（health + stats + gitlab webhook + checkout command）

注意：
- 归一化后的 webhook 事件如何触发 pipeline 不在这里决定，由注入的 handler 负责
- `httpx.AsyncClient` 会被复用（避免每个请求新建连接）

启动：
  uvicorn scm_gitlab.main:build_app --factory
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

import httpx
from fastapi import FastAPI

from scm_gitlab.checkout.plan import CheckoutCommand
from scm_gitlab.checkout.plan import CheckoutPlan
from scm_gitlab.config import load_config_from_env
from scm_gitlab.events import NormalizedWebhookEvent
from scm_gitlab.gitlab.webhook import WebhookHandler
from scm_gitlab.gitlab.webhook import build_gitlab_webhook_router
from scm_gitlab.scm import GitLabScm

logger = logging.getLogger(__name__)


async def log_event(event: NormalizedWebhookEvent) -> None:
    """默认 handler：只记录事件（真正触发 pipeline 的 handler 由平台注入）。"""
    logger.info(f"Received {event.type} event: action={event.action} branch={event.branch} sha={event.sha}")


def build_app(
    environ: Mapping[str, str] | None = None,
    http_client: httpx.AsyncClient | None = None,
    handler: WebhookHandler = log_event,
) -> FastAPI:
    """创建并返回 FastAPI app（便于测试/复用）。"""

    # 1) 配置：缺失会直接抛错，启动失败（这是期望行为）
    config = load_config_from_env(os.environ if environ is None else environ)
    logging.basicConfig(level=config.log_level)

    # 2) 可复用的 HTTP client：所有 GitLab API 调用共用
    http_client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(config.request_timeout))
    scm = GitLabScm(config=config, http_client=http_client)

    app = FastAPI(title="GitLab SCM adapter", version="0.1.0")

    @app.get("/health")
    async def health() -> dict[str, str]:
        """健康检查：用于 k8s / LB 探活。"""
        return {"status": "ok"}

    @app.get("/stats")
    async def stats() -> dict[str, int]:
        return scm.stats()

    @app.post("/checkout-command")
    async def checkout_command(plan: CheckoutPlan) -> CheckoutCommand:
        return scm.get_checkout_command(plan)

    app.include_router(
        build_gitlab_webhook_router(parse=scm.parse_hook, handler=handler, webhook_secret=config.webhook_secret)
    )
    return app
