from __future__ import annotations

import asyncio
import base64
import json
from typing import Any, Dict, Optional

import httpx
import pytest

from crashfix.gitops.github_rest import GitHubApiError, GitHubRestClient


def _make_transport() -> httpx.MockTransport:
    # In-memory “server state”
    state: Dict[str, Any] = {
        "refs": {"heads/Development": {"sha": "BASESHA"}},
        "files": {"App/UserService.swift": {"sha": "FILESHA", "content": "let a = b!\n"}},
        "prs": [],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        method = request.method.upper()

        if method == "GET" and path.endswith("/repos/owner/repo/git/ref/heads/Development"):
            return httpx.Response(200, json={"object": {"sha": state["refs"]["heads/Development"]["sha"]}})

        if method == "POST" and path.endswith("/repos/owner/repo/git/refs"):
            body = json.loads(request.content.decode("utf-8"))
            ref = body["ref"].replace("refs/", "")
            sha = body["sha"]
            # Simulate “already exists” => 422
            if ref in state["refs"]:
                return httpx.Response(422, json={"message": "Reference already exists"})
            state["refs"][ref] = {"sha": sha}
            return httpx.Response(201, json={"ref": body["ref"], "object": {"sha": sha}})

        if method == "GET" and path.endswith("/repos/owner/repo/contents/App/UserService.swift"):
            f = state["files"]["App/UserService.swift"]
            return httpx.Response(
                200,
                json={
                    "type": "file",
                    "path": "App/UserService.swift",
                    "sha": f["sha"],
                    "content": base64.b64encode(f["content"].encode("utf-8")).decode("ascii"),
                },
            )

        if method == "GET" and path.endswith("/repos/owner/repo/contents/App"):
            return httpx.Response(200, json=[{"type": "file", "path": "App/UserService.swift"}])

        if method == "PUT" and path.endswith("/repos/owner/repo/contents/App/UserService.swift"):
            body = json.loads(request.content.decode("utf-8"))
            assert body["branch"].startswith("fix/crashlytics-")
            assert body["sha"] == "FILESHA"
            assert base64.b64decode(body["content"]).decode("utf-8") == "guard let a = b else { return }\n"
            # Update sha to prove the call happened
            state["files"]["App/UserService.swift"]["sha"] = "NEWFILESHA"
            return httpx.Response(200, json={"content": {"sha": "NEWFILESHA"}})

        if method == "POST" and path.endswith("/repos/owner/repo/pulls"):
            body = json.loads(request.content.decode("utf-8"))
            pr_number = 123
            state["prs"].append(body)
            return httpx.Response(
                201,
                json={"number": pr_number, "title": body["title"], "html_url": f"https://github.com/owner/repo/pull/{pr_number}"},
            )

        if method == "GET" and path == "/search/code":
            assert request.url.params["q"] == "filename:UserService.swift repo:owner/repo"
            return httpx.Response(200, json={"total_count": 1, "items": [{"path": "App/UserService.swift"}]})

        return httpx.Response(404, json={"message": f"unhandled {method} {path}"})

    return httpx.MockTransport(handler)


def test_github_rest_client_branch_file_pr_flow() -> None:
    c = GitHubRestClient(token="t", repo="owner/repo", transport=_make_transport())

    async def flow() -> None:
        sha = await c.get_branch_head_sha(branch="Development")
        assert sha == "BASESHA"

        await c.create_branch(new_branch="fix/crashlytics-abcd-1", from_sha=sha)

        file_sha: Optional[str] = await c.get_file_sha(path="App/UserService.swift", ref="Development")
        assert file_sha == "FILESHA"

        await c.upsert_file(
            path="App/UserService.swift",
            content_text="guard let a = b else { return }\n",
            branch="fix/crashlytics-abcd-1",
            message="msg",
            known_sha=file_sha,
        )

        pr = await c.create_pull_request(title="t", body="b", head="fix/crashlytics-abcd-1", base="Development")
        assert pr.pr_number == 123
        assert pr.branch_name == "fix/crashlytics-abcd-1"

    asyncio.run(flow())


def test_get_content_decodes_and_handles_missing_and_dirs() -> None:
    c = GitHubRestClient(token="t", repo="owner/repo", transport=_make_transport())

    f = asyncio.run(c.get_content(path="App/UserService.swift", ref="Development"))
    assert f is not None
    assert f.content == "let a = b!\n"
    assert f.sha == "FILESHA"

    assert asyncio.run(c.get_content(path="App/Missing.swift", ref="Development")) is None
    assert asyncio.run(c.get_content(path="App", ref="Development")) is None


def test_search_code_returns_paths() -> None:
    c = GitHubRestClient(token="t", repo="owner/repo", transport=_make_transport())
    assert asyncio.run(c.search_code(filename="UserService.swift")) == ["App/UserService.swift"]


def test_create_branch_conflict_raises() -> None:
    c = GitHubRestClient(token="t", repo="owner/repo", transport=_make_transport())
    with pytest.raises(GitHubApiError) as ei:
        asyncio.run(c.create_branch(new_branch="Development", from_sha="x"))
    assert ei.value.status_code == 422
