from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from crashfix.models import PullRequestResult, TrackingIssueResult


class GitHubApiError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class RepoFile:
    path: str
    content: str
    sha: str


@dataclass(frozen=True)
class CommitSummary:
    message: str
    author: str
    date: str


@dataclass(frozen=True)
class GitHubRestClient:
    """
    Minimal async GitHub REST wrapper.

    Supports:
    - contents read (text + blob sha) and create/update via the Contents API
    - code search by filename, recursive tree listing, commit history per path
    - branch create/delete, PR creation, labels, issues

    Notes:
    - No git pushes; everything works with HTTPS + token.
    - Mockable in tests via an httpx transport override.
    """

    token: str
    repo: str  # owner/name
    api_base: str = "https://api.github.com"
    timeout_s: float = 20.0
    transport: httpx.AsyncBaseTransport | None = None

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport)

    def _url(self, suffix: str) -> str:
        return f"{self.api_base.rstrip('/')}/repos/{self.repo}{suffix}"

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        async with self._client() as c:
            return await c.request(method, url, headers=self._headers(), params=params, json=json)

    @staticmethod
    def _raise_for_status(r: httpx.Response) -> None:
        if r.status_code >= 400:
            req = r.request
            raise GitHubApiError(
                f"github_http_{r.status_code} {req.method} {req.url.path}: {r.text[:500]}",
                status_code=r.status_code,
            )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        r = await self._send(method, url, **kwargs)
        self._raise_for_status(r)
        return r

    async def get_content(self, *, path: str, ref: str) -> Optional[RepoFile]:
        r = await self._send("GET", self._url(f"/contents/{path.lstrip('/')}"), params={"ref": ref})
        if r.status_code == 404:
            return None
        self._raise_for_status(r)
        data = r.json()
        # Directories come back as a list; only files are useful here.
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            return None
        raw = data.get("content") or ""
        text = base64.b64decode(raw).decode("utf-8", errors="replace")
        return RepoFile(path=str(data.get("path") or path), content=text, sha=str(data.get("sha") or ""))

    async def get_file_sha(self, *, path: str, ref: str) -> Optional[str]:
        r = await self._send("GET", self._url(f"/contents/{path.lstrip('/')}"), params={"ref": ref})
        if r.status_code == 404:
            return None
        self._raise_for_status(r)
        data = r.json()
        return str(data.get("sha")) if isinstance(data, dict) and data.get("sha") else None

    async def search_code(self, *, filename: str, per_page: int = 3) -> List[str]:
        url = f"{self.api_base.rstrip('/')}/search/code"
        r = await self._request("GET", url, params={"q": f"filename:{filename} repo:{self.repo}", "per_page": per_page})
        data = r.json()
        if not data.get("total_count"):
            return []
        return [str(i["path"]) for i in data.get("items") or [] if isinstance(i, dict) and i.get("path")]

    async def get_branch_head_sha(self, *, branch: str) -> str:
        # GET /repos/{owner}/{repo}/git/ref/heads/{branch}
        r = await self._request("GET", self._url(f"/git/ref/heads/{branch}"))
        data = r.json()
        return str((data.get("object") or {}).get("sha"))

    async def list_tree_paths(self, *, tree_sha: str) -> List[str]:
        r = await self._request("GET", self._url(f"/git/trees/{tree_sha}"), params={"recursive": "true"})
        data = r.json()
        return [str(t["path"]) for t in data.get("tree") or [] if t.get("type") == "blob" and t.get("path")]

    async def list_commits(self, *, path: str, per_page: int = 5) -> List[CommitSummary]:
        r = await self._request("GET", self._url("/commits"), params={"path": path, "per_page": per_page})
        out: List[CommitSummary] = []
        for item in r.json() or []:
            commit = item.get("commit") or {}
            author = commit.get("author") or {}
            out.append(
                CommitSummary(
                    message=str(commit.get("message") or ""),
                    author=str(author.get("name") or "unknown"),
                    date=str(author.get("date") or ""),
                )
            )
        return out

    async def create_branch(self, *, new_branch: str, from_sha: str) -> None:
        # Branch names are unique per attempt, so an existing ref (422) is a real error here:
        # treating it as success would let the rollback delete a branch we did not create.
        payload = {"ref": f"refs/heads/{new_branch}", "sha": from_sha}
        await self._request("POST", self._url("/git/refs"), json=payload)

    async def delete_branch(self, *, branch: str) -> None:
        await self._request("DELETE", self._url(f"/git/refs/heads/{branch}"))

    async def upsert_file(
        self,
        *,
        path: str,
        content_text: str,
        branch: str,
        message: str,
        known_sha: Optional[str] = None,
    ) -> None:
        b64 = base64.b64encode(content_text.encode("utf-8")).decode("ascii")
        payload: Dict[str, Any] = {"message": message, "content": b64, "branch": branch}
        if known_sha:
            payload["sha"] = known_sha
        await self._request("PUT", self._url(f"/contents/{path.lstrip('/')}"), json=payload)

    async def create_pull_request(self, *, title: str, body: str, head: str, base: str) -> PullRequestResult:
        payload = {"title": title, "body": body, "head": head, "base": base}
        r = await self._request("POST", self._url("/pulls"), json=payload)
        data = r.json()
        return PullRequestResult(
            pr_number=int(data["number"]),
            pr_title=str(data["title"]),
            pr_url=str(data["html_url"]),
            branch_name=head,
        )

    async def add_labels(self, *, issue_number: int, labels: Sequence[str]) -> None:
        await self._request("POST", self._url(f"/issues/{issue_number}/labels"), json={"labels": list(labels)})

    async def create_issue(self, *, title: str, body: str, labels: Sequence[str] = ()) -> TrackingIssueResult:
        r = await self._request("POST", self._url("/issues"), json={"title": title, "body": body, "labels": list(labels)})
        data = r.json()
        return TrackingIssueResult(number=int(data["number"]), title=str(data["title"]), url=str(data["html_url"]))
