from __future__ import annotations

from typing import Any

import httpx
import pytest

from scm_gitlab.checkout.plan import CheckoutPlan
from scm_gitlab.config import GitLabScmConfig
from scm_gitlab.config import RetryConfig
from scm_gitlab.dev.mock_gitlab_server import HEAD_SHA
from scm_gitlab.dev.mock_gitlab_server import build_mock_gitlab_app
from scm_gitlab.errors import BadRequestError
from scm_gitlab.errors import ScmApiError
from scm_gitlab.scm import DEFAULT_AUTHOR
from scm_gitlab.scm import GitLabScm

pytestmark = pytest.mark.anyio

SCM_URI = "gitlab.example.com:123:main"
TOKEN = "t0ken"


@pytest.fixture
def mock_gitlab() -> Any:
    return build_mock_gitlab_app()


@pytest.fixture
def scm(mock_gitlab: Any) -> GitLabScm:
    config = GitLabScmConfig(
        oauth_client_id="id",
        oauth_client_secret="secret",
        gitlab_host="gitlab.example.com",
        fusebox=RetryConfig(retries=0),
    )
    http_client = httpx.AsyncClient(transport=httpx.ASGITransport(app=mock_gitlab))
    return GitLabScm(config=config, http_client=http_client)


async def _debug_state(mock_gitlab: Any) -> dict[str, Any]:
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=mock_gitlab), base_url="http://mock") as client:
        response = await client.get("/__debug__/state")
        return response.json()


async def test_parse_url_defaults_to_project_default_branch(scm: GitLabScm) -> None:
    scm_uri = await scm.parse_url("https://gitlab.example.com/screwdriver-cd/guide.git", token=TOKEN)
    assert scm_uri == "gitlab.example.com:123:main"


async def test_parse_url_keeps_branch_and_root_dir(scm: GitLabScm) -> None:
    scm_uri = await scm.parse_url("git@gitlab.example.com:screwdriver-cd/guide.git#develop:src", token=TOKEN)
    assert scm_uri == "gitlab.example.com:123:develop:src"


async def test_parse_url_explicit_root_dir_wins(scm: GitLabScm) -> None:
    scm_uri = await scm.parse_url(
        "https://gitlab.example.com/screwdriver-cd/guide#develop:src", token=TOKEN, root_dir="/lib/"
    )
    assert scm_uri == "gitlab.example.com:123:develop:lib"


async def test_parse_url_rejects_other_host(scm: GitLabScm) -> None:
    with pytest.raises(BadRequestError):
        await scm.parse_url("https://github.com/screwdriver-cd/guide.git", token=TOKEN)


async def test_parse_url_unknown_project(scm: GitLabScm) -> None:
    with pytest.raises(ScmApiError) as exc_info:
        await scm.parse_url("https://gitlab.example.com/nobody/nothing.git", token=TOKEN)
    assert exc_info.value.status_code == 404


async def test_lookup_scm_uri(scm: GitLabScm) -> None:
    repo = await scm.lookup_scm_uri("gitlab.example.com:123:main:docs", token=TOKEN)
    assert repo.hostname == "gitlab.example.com"
    assert repo.owner == "screwdriver-cd"
    assert repo.repo_name == "guide"
    assert repo.branch == "main"
    assert repo.root_dir == "docs"


async def test_add_webhook_creates_then_updates(scm: GitLabScm, mock_gitlab: Any) -> None:
    await scm.add_webhook(SCM_URI, token=TOKEN, webhook_url="https://ci.example.com/webhooks")
    await scm.add_webhook(SCM_URI, token=TOKEN, webhook_url="https://ci.example.com/webhooks")
    state = await _debug_state(mock_gitlab)
    assert len(state["hooks"]) == 1
    assert state["hooks"][0]["push_events"] is True
    assert state["hooks"][0]["merge_requests_events"] is True


async def test_get_commit_sha(scm: GitLabScm) -> None:
    assert await scm.get_commit_sha(SCM_URI, token=TOKEN) == HEAD_SHA
    assert await scm.get_commit_sha(SCM_URI, token=TOKEN, ref=HEAD_SHA) == HEAD_SHA


@pytest.mark.parametrize(
    ("build_status", "state"),
    [("SUCCESS", "success"), ("RUNNING", "running"), ("QUEUED", "pending"), ("ABORTED", "canceled"), ("FAILURE", "failed")],
)
async def test_update_commit_status(scm: GitLabScm, mock_gitlab: Any, build_status: str, state: str) -> None:
    await scm.update_commit_status(
        SCM_URI, sha=HEAD_SHA, build_status=build_status, token=TOKEN, url="https://ci.example.com/builds/1", job_name="main"
    )
    statuses = (await _debug_state(mock_gitlab))["statuses"]
    assert statuses[0]["state"] == state
    assert statuses[0]["name"] == "Screwdriver/main"
    assert statuses[0]["target_url"] == "https://ci.example.com/builds/1"


async def test_get_file_decodes_content(scm: GitLabScm) -> None:
    content = await scm.get_file(SCM_URI, path="screwdriver.yaml", token=TOKEN)
    assert content.startswith("jobs:\n")


async def test_get_file_missing(scm: GitLabScm) -> None:
    with pytest.raises(ScmApiError) as exc_info:
        await scm.get_file(SCM_URI, path="missing.yaml", token=TOKEN)
    assert exc_info.value.status_code == 404


async def test_decorate_url(scm: GitLabScm) -> None:
    decorated = await scm.decorate_url(SCM_URI, token=TOKEN)
    assert decorated.name == "screwdriver-cd/guide"
    assert decorated.branch == "main"
    assert decorated.url == "https://gitlab.example.com/screwdriver-cd/guide/tree/main"


async def test_decorate_commit(scm: GitLabScm) -> None:
    decorated = await scm.decorate_commit(SCM_URI, sha=HEAD_SHA, token=TOKEN)
    assert decorated.message == "Update screwdriver.yaml"
    assert decorated.author.username == "robin"
    assert decorated.url == f"https://gitlab.example.com/screwdriver-cd/guide/tree/{HEAD_SHA}"


async def test_decorate_author_unknown_user(scm: GitLabScm) -> None:
    assert await scm.decorate_author("nobody", token=TOKEN) == DEFAULT_AUTHOR


async def test_get_opened_prs(scm: GitLabScm) -> None:
    prs = await scm.get_opened_prs(SCM_URI, token=TOKEN)
    assert [(pr.name, pr.ref, pr.username) for pr in prs] == [("PR-1", "merge-requests/1/head", "robin")]


async def test_add_pr_comment(scm: GitLabScm, mock_gitlab: Any) -> None:
    note_id = await scm.add_pr_comment(SCM_URI, pr_num=1, comment="Build passed", token=TOKEN)
    assert note_id == 1
    assert (await _debug_state(mock_gitlab))["notes"][0]["body"] == "Build passed"


async def test_sync_operations_use_adapter_context(scm: GitLabScm, push_payload: dict[str, Any]) -> None:
    assert scm.get_scm_contexts() == ["gitlab:gitlab.example.com"]
    event = scm.parse_hook({"X-Gitlab-Event": "Push Hook"}, push_payload)
    assert event is not None
    assert event.scm_context == "gitlab:gitlab.example.com"
    assert scm.can_handle_webhook({}, push_payload) is False

    plan = CheckoutPlan(branch="main", host="gitlab.example.com", org="screwdriver-cd", repo="guide", sha=HEAD_SHA)
    assert scm.get_checkout_command(plan).name == "sd-checkout-code"
