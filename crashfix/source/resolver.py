from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from crashfix.gitops.github_rest import GitHubRestClient, RepoFile
from crashfix.models import FileLocation, SourceExcerpt
from crashfix.source.tree_cache import RepositoryTreeCache


EventCallback = Callable[[str, Dict[str, Any]], None]

NOT_FOUND = "file not found"


def _noop(name: str, payload: Dict[str, Any]) -> None:
    return None


def render_window(lines: Sequence[str], line: Optional[int], *, context_lines: int = 20, head_lines: int = 100) -> str:
    """
    Line-numbered view of a file: +/- `context_lines` around `line` (marked with an arrow),
    or the first `head_lines` lines when there is no line number.
    """
    if line:
        start = max(0, line - context_lines)
        end = min(len(lines), line + context_lines)
        out = []
        for i, text in enumerate(lines[start:end]):
            n = start + i + 1
            marker = " → " if n == line else "   "
            out.append(f"{marker}{n}: {text}")
        return "\n".join(out)
    return "\n".join(f"   {i + 1}: {text}" for i, text in enumerate(lines[:head_lines]))


@dataclass
class SourceResolver:
    """
    Maps crash file hints to exact repository paths and fetches their content.

    Tiers, in order, stopping at the first hit:
    1. direct path probe (hint already contains "/")
    2. code search on the base filename
    3. whole-tree listing (cached, most expensive)
    """

    client: GitHubRestClient
    tree_cache: RepositoryTreeCache
    branch: str
    context_lines: int = 20
    head_lines: int = 100
    history_limit: int = 5

    async def resolve_all(
        self,
        locations: Sequence[FileLocation],
        *,
        on_event: EventCallback | None = None,
    ) -> List[SourceExcerpt]:
        _emit = on_event or _noop
        results: List[SourceExcerpt] = []
        for loc in locations:
            if not loc.file:
                _emit("source.skipped", {"reason": "empty_file_hint"})
                continue
            results.append(await self.resolve_one(loc, on_event=_emit))
        return results

    async def resolve_one(self, loc: FileLocation, *, on_event: EventCallback | None = None) -> SourceExcerpt:
        """
        Never raises: a failure is recorded on the returned excerpt.
        """
        _emit = on_event or _noop
        try:
            return await self._resolve_one(loc, _emit)
        except Exception as e:  # noqa: BLE001
            _emit("source.failed", {"file": loc.file, "error": f"{type(e).__name__}: {e}"})
            return SourceExcerpt(file=loc.file, line=loc.line, error=str(e) or type(e).__name__)

    async def _resolve_one(self, loc: FileLocation, _emit: EventCallback) -> SourceExcerpt:
        path, prefetched = await self.resolve_path(loc.file, on_event=_emit)
        if path is None:
            _emit("source.not_found", {"file": loc.file})
            return SourceExcerpt(file=loc.file, line=loc.line, error=NOT_FOUND)

        try:
            repo_file = prefetched or await self.client.get_content(path=path, ref=self.branch)
        except Exception as e:  # noqa: BLE001
            _emit("source.fetch_failed", {"file": loc.file, "path": path, "error": str(e)})
            return SourceExcerpt(file=loc.file, path=path, line=loc.line, error=str(e))
        if repo_file is None:
            _emit("source.fetch_failed", {"file": loc.file, "path": path, "error": NOT_FOUND})
            return SourceExcerpt(file=loc.file, path=path, line=loc.line, error=NOT_FOUND)

        lines = repo_file.content.split("\n")
        excerpt = render_window(lines, loc.line, context_lines=self.context_lines, head_lines=self.head_lines)
        history = await self.recent_history(path, on_event=_emit)
        return SourceExcerpt(
            file=loc.file,
            path=path,
            line=loc.line,
            content=repo_file.content,
            excerpt=excerpt,
            sha=repo_file.sha or None,
            recent_commits=history,
        )

    async def resolve_path(
        self,
        file: str,
        *,
        on_event: EventCallback | None = None,
    ) -> Tuple[Optional[str], Optional[RepoFile]]:
        """
        Returns (repository path, content if the winning tier already fetched it).
        """
        _emit = on_event or _noop
        basename = file.rsplit("/", 1)[-1]

        if "/" in file:
            try:
                direct = await self.client.get_content(path=file, ref=self.branch)
            except Exception as e:  # noqa: BLE001
                direct = None
                _emit("source.tier_failed", {"tier": "direct", "file": file, "error": str(e)})
            if direct is not None:
                _emit("source.resolved", {"tier": "direct", "file": file, "path": file})
                return file, direct

        try:
            hits = await self.client.search_code(filename=basename, per_page=3)
        except Exception as e:  # noqa: BLE001
            hits = []
            _emit("source.tier_failed", {"tier": "search", "file": file, "error": str(e)})
        if hits:
            path = file if file in hits else hits[0]
            _emit("source.resolved", {"tier": "search", "file": file, "path": path})
            return path, None

        try:
            all_paths = await self.tree_cache.get(self._load_tree)
        except Exception as e:  # noqa: BLE001
            all_paths = []
            _emit("source.tier_failed", {"tier": "tree", "file": file, "error": str(e)})
        for p in all_paths:
            if p == file or p.endswith(f"/{basename}"):
                _emit("source.resolved", {"tier": "tree", "file": file, "path": p})
                return p, None
        return None, None

    async def _load_tree(self) -> List[str]:
        head = await self.client.get_branch_head_sha(branch=self.branch)
        return await self.client.list_tree_paths(tree_sha=head)

    async def recent_history(self, path: str, *, on_event: EventCallback | None = None) -> List[str]:
        try:
            commits = await self.client.list_commits(path=path, per_page=self.history_limit)
        except Exception as e:  # noqa: BLE001
            (on_event or _noop)("source.history_failed", {"path": path, "error": str(e)})
            return []
        return [
            f"- {c.message.splitlines()[0] if c.message else ''} ({c.author}, {c.date[:10]})"
            for c in commits[: self.history_limit]
        ]
