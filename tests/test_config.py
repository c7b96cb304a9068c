from __future__ import annotations

import pytest
from pydantic import ValidationError

from scm_gitlab.config import GitLabScmConfig
from scm_gitlab.config import ReadOnlyConfig
from scm_gitlab.config import load_config_from_env


def test_load_config_requires_oauth_client() -> None:
    with pytest.raises(ValueError):
        load_config_from_env(environ={})


def test_load_config_rejects_empty_oauth_secret() -> None:
    environ = {"GITLAB_OAUTH_CLIENT_ID": "id", "GITLAB_OAUTH_CLIENT_SECRET": ""}
    with pytest.raises(ValueError):
        load_config_from_env(environ=environ)


def test_load_config_defaults() -> None:
    cfg = load_config_from_env(environ={"GITLAB_OAUTH_CLIENT_ID": "id", "GITLAB_OAUTH_CLIENT_SECRET": "secret"})
    assert cfg.gitlab_host == "gitlab.com"
    assert cfg.gitlab_protocol == "https"
    assert cfg.username == "sd-buildbot"
    assert cfg.email == "dev-null@screwdriver.cd"
    assert cfg.https is False
    assert cfg.read_only.enabled is False
    assert cfg.scm_context == "gitlab:gitlab.com"
    assert cfg.api_base_url == "https://gitlab.com/api/v4"


def test_load_config_overrides() -> None:
    environ = {
        "GITLAB_OAUTH_CLIENT_ID": "id",
        "GITLAB_OAUTH_CLIENT_SECRET": "secret",
        "GITLAB_HOST": "gitlab.example.com",
        "GITLAB_PROTOCOL": "http",
        "GITLAB_HTTPS": "true",
        "GITLAB_WEBHOOK_SECRET": "s",
        "GITLAB_READONLY_ENABLED": "true",
        "GITLAB_READONLY_CLONE_TYPE": "ssh",
    }
    cfg = load_config_from_env(environ=environ)
    assert cfg.api_base_url == "http://gitlab.example.com/api/v4"
    assert cfg.https is True
    assert cfg.webhook_secret == "s"
    assert cfg.read_only == ReadOnlyConfig(enabled=True, clone_type="ssh")


def test_read_only_https_requires_credentials() -> None:
    with pytest.raises(ValidationError):
        ReadOnlyConfig(enabled=True, clone_type="https", username="reader")


def test_config_is_immutable() -> None:
    cfg = GitLabScmConfig(oauth_client_id="id", oauth_client_secret="secret")
    with pytest.raises(ValidationError):
        cfg.gitlab_host = "other.example.com"


def test_config_ignores_unknown_keys() -> None:
    cfg = GitLabScmConfig.model_validate({"oauth_client_id": "id", "oauth_client_secret": "s", "unknown": 1})
    assert not hasattr(cfg, "unknown")
