"""
GitLab SCM adapter 配置加载。

设计目标：
- **严格**：缺少 OAuth client 信息就直接报错（避免“看起来跑了其实没配置好”）
- **类型安全**：使用 Pydantic 校验/补默认值（host、protocol、checkout 身份、只读账号）
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试

说明：
- 配置在 adapter 生命周期内视为不可变（frozen），checkout 脚本生成会直接读取它
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ReadOnlyConfig(BaseModel):
    """只读服务账号：启用后 checkout 一律使用它，而不是 build 环境里的凭证。"""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    username: str = ""
    access_token: str = ""
    clone_type: Literal["https", "ssh"] = "https"

    @model_validator(mode="after")
    def _require_credentials(self) -> ReadOnlyConfig:
        if self.enabled and self.clone_type == "https" and (not self.username or not self.access_token):
            raise ValueError("read_only.username and read_only.access_token are required for https clone")
        return self


class RetryConfig(BaseModel):
    """GitLab REST 调用的重试参数（单位：秒）。"""

    model_config = ConfigDict(frozen=True)

    retries: int = Field(default=5, ge=0)
    min_timeout: float = Field(default=1.0, ge=0)
    max_timeout: float = Field(default=10.0, ge=0)
    factor: float = Field(default=2.0, ge=1)


class GitLabScmConfig(BaseModel):
    """adapter 构造参数（OAuth 信息必填，其余都有默认值）。"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    gitlab_protocol: str = "https"
    gitlab_host: str = "gitlab.com"
    username: str = "sd-buildbot"
    email: str = "dev-null@screwdriver.cd"
    https: bool = False
    oauth_client_id: str = Field(min_length=1)
    oauth_client_secret: str = Field(min_length=1)
    read_only: ReadOnlyConfig = Field(default_factory=ReadOnlyConfig)
    fusebox: RetryConfig = Field(default_factory=RetryConfig)
    request_timeout: float = Field(default=20.0, gt=0)
    webhook_secret: str | None = None
    log_level: str = "INFO"

    @property
    def scm_context(self) -> str:
        """标识当前 adapter 实例（一个 GitLab host 对应一个 context）。"""
        return f"gitlab:{self.gitlab_host}"

    @property
    def api_base_url(self) -> str:
        return f"{self.gitlab_protocol}://{self.gitlab_host}/api/v4"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config_from_env(environ: Mapping[str, str]) -> GitLabScmConfig:
    """
    从环境变量加载并校验配置。

    - **输入**：`environ`（例如 `os.environ`）
    - **输出**：`GitLabScmConfig`
    - **失败**：OAuth client 信息缺失/为空则抛 `ValueError`；其它字段非法由 Pydantic 抛错
    """

    required_keys: tuple[str, ...] = ("GITLAB_OAUTH_CLIENT_ID", "GITLAB_OAUTH_CLIENT_SECRET")
    missing: list[str] = [key for key in required_keys if key not in environ or not environ[key]]
    if missing:
        raise ValueError(f"Missing required env vars: {', '.join(missing)}")

    optional: dict[str, str] = {
        "gitlab_protocol": "GITLAB_PROTOCOL",
        "gitlab_host": "GITLAB_HOST",
        "username": "GITLAB_USERNAME",
        "email": "GITLAB_EMAIL",
        "webhook_secret": "GITLAB_WEBHOOK_SECRET",
        "log_level": "LOG_LEVEL",
    }
    values: dict[str, object] = {field: environ[key] for field, key in optional.items() if environ.get(key)}
    if environ.get("GITLAB_HTTPS"):
        values["https"] = _parse_bool(environ["GITLAB_HTTPS"])

    # 只读账号：只有显式开启时才组装，避免半配置状态
    if _parse_bool(environ.get("GITLAB_READONLY_ENABLED", "")):
        values["read_only"] = ReadOnlyConfig(
            enabled=True,
            username=environ.get("GITLAB_READONLY_USERNAME", ""),
            access_token=environ.get("GITLAB_READONLY_ACCESS_TOKEN", ""),
            clone_type=environ.get("GITLAB_READONLY_CLONE_TYPE") or "https",
        )

    return GitLabScmConfig(
        oauth_client_id=environ["GITLAB_OAUTH_CLIENT_ID"],
        oauth_client_secret=environ["GITLAB_OAUTH_CLIENT_SECRET"],
        **values,
    )
