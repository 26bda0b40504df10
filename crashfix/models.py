from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AlertKind(str, Enum):
    fatal = "fatal"
    nonfatal = "nonfatal"
    regression = "regression"
    velocity = "velocity"
    test = "test"


ALERT_LABELS = {
    AlertKind.fatal: ("New fatal issue", "🔥"),
    AlertKind.nonfatal: ("New non-fatal issue", "✨"),
    AlertKind.regression: ("Regressed issue", "↩️"),
    AlertKind.velocity: ("Trending issue (velocity alert)", "📈"),
    AlertKind.test: ("[Test] Crash alert", "🧪"),
}


class CrashIssue(BaseModel):
    """
    A single crash issue as published by the alerting platform.
    Immutable once received.
    """

    model_config = ConfigDict(frozen=True)

    id: str = "unknown"
    title: str = ""
    subtitle: str = ""
    app_version: str = ""


class CrashAlertEvent(BaseModel):
    app_id: str = ""
    project: str = ""
    kind: AlertKind = AlertKind.fatal
    issue: CrashIssue
    # Test scenarios carry their own description as the alert label.
    label: Optional[str] = None

    @property
    def platform(self) -> str:
        app = self.app_id.lower()
        if "ios" in app:
            return "🍎 iOS"
        if "android" in app:
            return "🤖 Android"
        return "Unknown"

    @property
    def type_label(self) -> str:
        return self.label or ALERT_LABELS[self.kind][0]

    @property
    def emoji(self) -> str:
        return ALERT_LABELS[self.kind][1]


class FileLocation(BaseModel):
    file: str
    line: Optional[int] = None


class SourceExcerpt(BaseModel):
    """
    Result of resolving one FileLocation against the repository.
    Resolution failures are kept (with `error`) so they can still be reported.
    """

    file: str
    path: Optional[str] = None
    line: Optional[int] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    sha: Optional[str] = None
    recent_commits: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.error is None and bool(self.path) and self.content is not None


class FixEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(..., alias="filePath", min_length=1)
    fixed_code: str = Field(..., alias="fixedCode")
    summary: str = ""

    @field_validator("summary", mode="before")
    @classmethod
    def _null_summary(cls, v: object) -> object:
        return "" if v is None else v


class FixProposal(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    fixes: List[FixEntry] = Field(..., min_length=1)
    pr_title: str = Field(default="", alias="prTitle")
    pr_description: str = Field(default="", alias="prDescription")

    # Model output sometimes carries explicit nulls for optional text.
    @field_validator("pr_title", "pr_description", mode="before")
    @classmethod
    def _null_text(cls, v: object) -> object:
        return "" if v is None else v


class PullRequestResult(BaseModel):
    pr_number: int
    pr_title: str
    pr_url: str
    branch_name: str


class TrackingIssueResult(BaseModel):
    number: int
    title: str
    url: str


class NotificationThread(BaseModel):
    channel: str
    root_ts: str
    replies: List[str] = Field(default_factory=list)


class ActionFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(..., alias="filePath")
    line: Optional[int] = None


class ActionPayload(BaseModel):
    """
    Crash info round-tripped through Slack button values.
    Only path/line hints are carried (button values are capped at 2000 chars).
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str = "Unknown crash"
    subtitle: str = ""
    app_version: str = Field(default="", alias="appVersion")
    files: List[ActionFile] = Field(default_factory=list)

    def to_issue(self, *, issue_id: str = "unknown") -> CrashIssue:
        return CrashIssue(id=issue_id, title=self.title, subtitle=self.subtitle, app_version=self.app_version)

    def to_locations(self) -> List[FileLocation]:
        return [FileLocation(file=f.path, line=f.line) for f in self.files]


class PipelineOutcome(BaseModel):
    issue_id: str
    status: Literal["completed", "aborted", "failed"] = "completed"
    aborted_reason: Optional[str] = None
    thread: Optional[NotificationThread] = None
    locations: List[FileLocation] = Field(default_factory=list)
    resolved_paths: List[str] = Field(default_factory=list)
    unresolved_files: List[str] = Field(default_factory=list)
    analysis_available: bool = False
    fix_action_offered: bool = False
    error: Optional[str] = None


class ScenarioRunResult(BaseModel):
    id: str
    success: bool
    error: Optional[str] = None
