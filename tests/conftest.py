from __future__ import annotations

import copy
from typing import Any

import pytest

from scm_gitlab.config import GitLabScmConfig

_MERGE_REQUEST_PAYLOAD: dict[str, Any] = {
    "object_kind": "merge_request",
    "event_type": "merge_request",
    "user": {"name": "Administrator", "username": "root"},
    "project": {
        "id": 1,
        "git_http_url": "http://example.com/awesome_space/awesome_project.git",
        "git_ssh_url": "git@example.com:awesome_space/awesome_project.git",
        "path_with_namespace": "awesome_space/awesome_project",
    },
    "object_attributes": {
        "id": 99,
        "iid": 1,
        "title": "MS-Viewport",
        "state": "opened",
        "action": "open",
        "source_project_id": 1,
        "target_project_id": 1,
        "source_branch": "ms-viewport",
        "target_branch": "master",
        "source": {"git_http_url": "http://example.com/awesome_space/awesome_project.git"},
        "target": {"git_http_url": "http://example.com/awesome_space/awesome_project.git"},
        "last_commit": {
            "id": "da1560886d4f094c3e6c9ef40349f7d38b5d27d7",
            "message": "fixed readme",
        },
    },
}

_PUSH_PAYLOAD: dict[str, Any] = {
    "object_kind": "push",
    "event_name": "push",
    "before": "95790bf891e76fee5e1747ab589903a6a1f80f22",
    "after": "da1560886d4f094c3e6c9ef40349f7d38b5d27d7",
    "ref": "refs/heads/master",
    "checkout_sha": "da1560886d4f094c3e6c9ef40349f7d38b5d27d7",
    "user_name": "John Smith",
    "user_username": "jsmith",
    "project": {
        "id": 15,
        "git_http_url": "http://example.com/mike/diaspora.git",
        "git_ssh_url": "git@example.com:mike/diaspora.git",
        "path_with_namespace": "mike/diaspora",
    },
    "commits": [
        {
            "id": "b6568db1bc1dcd7f8b4d5a946b0b91f9dacd7327",
            "message": "Update Catalan translation to e38cb41.",
            "author": {"name": "Jordi Mallach", "email": "jordi@softcatala.org"},
            "added": ["CHANGELOG"],
            "modified": ["app/controller/application.rb"],
            "removed": [],
        },
        {
            "id": "da1560886d4f094c3e6c9ef40349f7d38b5d27d7",
            "message": "fixed readme",
            "author": {"name": "GitLab dev user", "email": "gitlabdev@dv6700.(none)"},
            "added": ["README.md"],
            "modified": [],
            "removed": ["docs/old.md"],
        },
    ],
}


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def merge_request_payload() -> dict[str, Any]:
    return copy.deepcopy(_MERGE_REQUEST_PAYLOAD)


@pytest.fixture
def push_payload() -> dict[str, Any]:
    return copy.deepcopy(_PUSH_PAYLOAD)


@pytest.fixture
def gitlab_headers() -> dict[str, str]:
    return {"X-Gitlab-Event": "Merge Request Hook", "Content-Type": "application/json"}


@pytest.fixture
def config() -> GitLabScmConfig:
    return GitLabScmConfig(oauth_client_id="myclientid", oauth_client_secret="myclientsecret")
