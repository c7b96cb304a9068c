"""
本地 Mock GitLab API server（只覆盖 adapter 用到的 v4 接口）。

用途：
- 在没有真实 GitLab 的情况下，本地跑通：
  parse_url -> add_webhook -> update_commit_status -> get_file -> add_pr_comment
- 单元测试通过 `httpx.ASGITransport` 直接挂载 `build_mock_gitlab_app()`

启动：
  python -m scm_gitlab.dev.mock_gitlab_server
"""

from __future__ import annotations

import base64

import uvicorn
from fastapi import FastAPI
from fastapi import Header
from fastapi import HTTPException
from pydantic import BaseModel

PROJECT_ID = 123
PROJECT_PATH = "screwdriver-cd/guide"
DEFAULT_BRANCH = "main"
HEAD_SHA = "da1560886d4f094c3e6c9ef40349f7d38b5d27d7"
FILES = {"screwdriver.yaml": "jobs:\n  main:\n    steps:\n      - test: echo hello\n"}


class HookRequest(BaseModel):
    url: str
    push_events: bool = False
    merge_requests_events: bool = False


class StatusRequest(BaseModel):
    state: str
    name: str
    description: str = ""
    target_url: str = ""


class NoteCreateRequest(BaseModel):
    body: str


def _require_auth(authorization: str | None) -> None:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="401 Unauthorized")


def _require_project(project_ref: str) -> None:
    if project_ref not in (str(PROJECT_ID), PROJECT_PATH):
        raise HTTPException(status_code=404, detail="404 Project Not Found")


def build_mock_gitlab_app() -> FastAPI:
    """每次调用返回一个状态独立的 mock app（测试之间互不影响）。"""
    app = FastAPI(title="Mock GitLab API", version="0.1.0")
    hooks: list[dict[str, object]] = []
    statuses: list[dict[str, object]] = []
    notes: list[dict[str, object]] = []

    @app.get("/api/v4/projects/{project_ref}/hooks")
    async def list_hooks(project_ref: str, authorization: str | None = Header(default=None)) -> list[dict[str, object]]:
        _require_auth(authorization)
        _require_project(project_ref)
        return hooks

    @app.post("/api/v4/projects/{project_ref}/hooks", status_code=201)
    async def create_hook(
        project_ref: str,
        req: HookRequest,
        authorization: str | None = Header(default=None),
    ) -> dict[str, object]:
        _require_auth(authorization)
        _require_project(project_ref)
        hook = {"id": len(hooks) + 1, **req.model_dump()}
        hooks.append(hook)
        return hook

    @app.put("/api/v4/projects/{project_ref}/hooks/{hook_id}")
    async def update_hook(
        project_ref: str,
        hook_id: int,
        req: HookRequest,
        authorization: str | None = Header(default=None),
    ) -> dict[str, object]:
        _require_auth(authorization)
        _require_project(project_ref)
        for hook in hooks:
            if hook["id"] == hook_id:
                hook.update(req.model_dump())
                return hook
        raise HTTPException(status_code=404, detail="404 Not found")

    @app.get("/api/v4/projects/{project_ref}/repository/branches/{branch:path}")
    async def get_branch(project_ref: str, branch: str, authorization: str | None = Header(default=None)) -> dict[str, object]:
        _require_auth(authorization)
        _require_project(project_ref)
        if branch != DEFAULT_BRANCH:
            raise HTTPException(status_code=404, detail="404 Branch Not Found")
        return {"name": branch, "commit": {"id": HEAD_SHA}}

    @app.get("/api/v4/projects/{project_ref}/repository/commits/{sha}")
    async def get_commit(project_ref: str, sha: str, authorization: str | None = Header(default=None)) -> dict[str, object]:
        _require_auth(authorization)
        _require_project(project_ref)
        if sha not in (HEAD_SHA, DEFAULT_BRANCH):
            raise HTTPException(status_code=404, detail="404 Commit Not Found")
        return {"id": HEAD_SHA, "message": "Update screwdriver.yaml", "author_name": "robin", "author_email": "robin@example.com"}

    @app.get("/api/v4/projects/{project_ref}/repository/files/{file_path:path}")
    async def get_file(
        project_ref: str,
        file_path: str,
        ref: str,
        authorization: str | None = Header(default=None),
    ) -> dict[str, object]:
        _require_auth(authorization)
        _require_project(project_ref)
        if file_path not in FILES:
            raise HTTPException(status_code=404, detail="404 File Not Found")
        content = base64.b64encode(FILES[file_path].encode("utf-8")).decode("ascii")
        return {"file_path": file_path, "ref": ref, "content": content, "encoding": "base64"}

    @app.post("/api/v4/projects/{project_ref}/statuses/{sha}", status_code=201)
    async def create_status(
        project_ref: str,
        sha: str,
        req: StatusRequest,
        authorization: str | None = Header(default=None),
    ) -> dict[str, object]:
        _require_auth(authorization)
        _require_project(project_ref)
        status = {"id": len(statuses) + 1, "sha": sha, "status": req.state, **req.model_dump()}
        statuses.append(status)
        return status

    @app.get("/api/v4/projects/{project_ref}/merge_requests")
    async def list_merge_requests(
        project_ref: str,
        state: str = "all",
        authorization: str | None = Header(default=None),
    ) -> list[dict[str, object]]:
        _require_auth(authorization)
        _require_project(project_ref)
        merge_request = {
            "iid": 1,
            "title": "Add checkout docs",
            "source_branch": "docs",
            "target_branch": DEFAULT_BRANCH,
            "state": "opened",
            "created_at": "2024-01-01T00:00:00.000Z",
            "web_url": f"https://gitlab.example.com/{PROJECT_PATH}/-/merge_requests/1",
            "author": {"username": "robin", "name": "Robin"},
        }
        return [merge_request] if state in ("opened", "all") else []

    @app.post("/api/v4/projects/{project_ref}/merge_requests/{mr_iid}/notes", status_code=201)
    async def post_merge_request_note(
        project_ref: str,
        mr_iid: int,
        req: NoteCreateRequest,
        authorization: str | None = Header(default=None),
    ) -> dict[str, object]:
        _require_auth(authorization)
        _require_project(project_ref)
        note = {"id": len(notes) + 1, "body": req.body, "mr_iid": mr_iid}
        notes.append(note)
        return note

    @app.get("/api/v4/users")
    async def find_users(username: str, authorization: str | None = Header(default=None)) -> list[dict[str, object]]:
        _require_auth(authorization)
        if username != "robin":
            return []
        return [
            {
                "username": "robin",
                "name": "Robin",
                "avatar_url": "https://gitlab.example.com/uploads/robin.png",
                "web_url": "https://gitlab.example.com/robin",
            }
        ]

    # 放在最后：project_ref 可能是编码过的 `owner/repo`，解码后含 "/"
    @app.get("/api/v4/projects/{project_ref:path}")
    async def get_project(project_ref: str, authorization: str | None = Header(default=None)) -> dict[str, object]:
        _require_auth(authorization)
        _require_project(project_ref)
        return {
            "id": PROJECT_ID,
            "path_with_namespace": PROJECT_PATH,
            "default_branch": DEFAULT_BRANCH,
            "web_url": f"https://gitlab.example.com/{PROJECT_PATH}",
        }

    @app.get("/__debug__/state")
    async def debug_state() -> dict[str, object]:
        return {"hooks": hooks, "statuses": statuses, "notes": notes}

    return app


app = build_mock_gitlab_app()


def main() -> None:
    uvicorn.run(app, host="127.0.0.1", port=9002)


if __name__ == "__main__":
    main()
