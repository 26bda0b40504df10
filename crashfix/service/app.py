from __future__ import annotations

import asyncio
import json
import os
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict
from urllib.parse import parse_qs

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from crashfix.diagnosis.engine import DiagnosticEngine
from crashfix.gitops.github_rest import GitHubRestClient
from crashfix.gitops.pr_creator import PullRequestCreator
from crashfix.llm.anthropic_client import AnthropicClient
from crashfix.models import AlertKind
from crashfix.notify.channel import NotificationChannel
from crashfix.notify.interactions import InteractionHandler
from crashfix.notify.signature import verify_slack_signature
from crashfix.notify.slack_client import SlackWebClient
from crashfix.parsers.payloads import decode_alert_event, decode_interaction_payload
from crashfix.pipeline.orchestrator import CrashPipeline
from crashfix.settings import Settings
from crashfix.source.resolver import SourceResolver
from crashfix.source.tree_cache import RepositoryTreeCache
from crashfix.telemetry.audit import AuditLogger
from crashfix.testing.scenarios import (
    TEST_SCENARIOS,
    build_fake_event,
    custom_issue,
    find_scenario,
    pick_random_scenario,
    run_scenarios,
    scenario_listing,
)


VERSION = "0.1.0"


@dataclass(frozen=True)
class Services:
    settings: Settings
    audit: AuditLogger
    pipeline: CrashPipeline
    interactions: InteractionHandler


def build_services(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Services:
    """
    Wires clients and pipeline components from settings.

    One RepositoryTreeCache is shared by alert processing and button interactions.
    `transport` is passed to every HTTP client (tests route all upstream APIs through one mock).
    """
    s = settings
    github = GitHubRestClient(
        token=s.github_token or "",
        repo=s.github_repo,
        api_base=s.github_api_base,
        timeout_s=s.github_timeout_s,
        transport=transport,
    )
    slack = SlackWebClient(
        token=s.slack_bot_token or "",
        api_base=s.slack_api_base,
        timeout_s=s.slack_timeout_s,
        transport=transport,
    )
    llm = AnthropicClient(
        api_key=s.anthropic_api_key or "",
        base_url=s.anthropic_base_url,
        api_version=s.anthropic_version,
        timeout_s=s.anthropic_timeout_s,
        max_retries=s.anthropic_max_retries,
        retry_backoff_s=s.anthropic_retry_backoff_s,
        transport=transport,
    )
    resolver = SourceResolver(
        client=github,
        tree_cache=RepositoryTreeCache(ttl_s=s.tree_cache_ttl_s),
        branch=s.github_base_branch,
        context_lines=s.excerpt_context_lines,
        head_lines=s.excerpt_head_lines,
        history_limit=s.history_limit,
    )
    engine = DiagnosticEngine(
        llm=llm,
        model=s.anthropic_model,
        analysis_max_tokens=s.analysis_max_tokens,
        fix_max_tokens=s.fix_max_tokens,
        language=s.source_extension,
    )
    channel = NotificationChannel(
        slack=slack,
        channel_id=s.slack_channel_id,
        console_url=s.console_url,
        github_repo=s.github_repo,
        branch=s.github_base_branch,
        block_limit=s.slack_block_limit,
    )
    pipeline = CrashPipeline(
        channel=channel,
        resolver=resolver,
        engine=engine,
        retry_delay_s=s.analysis_retry_delay_s,
        source_extension=s.source_extension,
        sleep=sleep,
    )
    interactions = InteractionHandler(
        slack=slack,
        github=github,
        resolver=resolver,
        engine=engine,
        publisher=PullRequestCreator(client=github, base_branch=s.github_base_branch),
    )
    return Services(settings=s, audit=AuditLogger(s.audit_log_path), pipeline=pipeline, interactions=interactions)


def _services(request: Request) -> Services:
    return request.app.state.services


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """
    App factory used by uvicorn and tests.
    """
    s = settings or (services.settings if services else Settings())
    svc = services or build_services(s)
    os.makedirs(os.path.dirname(s.audit_log_path) or ".", exist_ok=True)

    new_app = FastAPI(title="CRASHFIX", version=VERSION)
    new_app.state.settings = s
    new_app.state.services = svc

    @new_app.get("/health")
    def health() -> Dict[str, Any]:
        return {"ok": True, "version": VERSION}

    @new_app.post("/alerts/{kind}")
    async def crash_alert(kind: AlertKind, request: Request) -> JSONResponse:
        svc = _services(request)
        audit = svc.audit
        correlation_id = audit.new_correlation_id()
        try:
            body = await request.json()
        except ValueError:
            body = None
        event = decode_alert_event(body, kind=kind)
        if event is None:
            audit.write(correlation_id, "alert.missing_issue", {"kind": kind.value})
            return JSONResponse({"ok": False, "reason": "missing_issue", "correlation_id": correlation_id})

        audit.write(correlation_id, "alert.received", {"event": event.model_dump(mode="json")})
        outcome = await svc.pipeline.run(event, on_event=audit.recorder(correlation_id))
        audit.write(correlation_id, "pipeline.finished", {"outcome": outcome.model_dump(mode="json")})
        return JSONResponse(
            {
                "ok": outcome.status != "aborted",
                "correlation_id": correlation_id,
                "outcome": outcome.model_dump(mode="json"),
            }
        )

    @new_app.post("/slack/interactions")
    async def slack_interactions(request: Request) -> JSONResponse:
        svc = _services(request)
        audit = svc.audit
        raw = await request.body()
        correlation_id = audit.new_correlation_id()
        secret = svc.settings.slack_signing_secret
        if secret and not verify_slack_signature(
            signing_secret=secret,
            timestamp=request.headers.get("X-Slack-Request-Timestamp"),
            signature=request.headers.get("X-Slack-Signature"),
            body=raw,
        ):
            audit.write(correlation_id, "interaction.rejected", {"reason": "bad_signature"})
            return JSONResponse({"ok": False, "error": "invalid_signature", "correlation_id": correlation_id}, status_code=401)

        form = parse_qs(raw.decode("utf-8", errors="replace"))
        payload = decode_interaction_payload((form.get("payload") or [None])[0])
        if payload is None:
            audit.write(correlation_id, "interaction.invalid", {"reason": "bad_payload"})
            return JSONResponse({"ok": False, "error": "invalid_payload", "correlation_id": correlation_id})

        # Slack retries after 3s without a response; the handler still runs to completion first.
        result = await svc.interactions.handle(payload, on_event=audit.recorder(correlation_id))
        audit.write(correlation_id, "interaction.finished", {"result": result})
        return JSONResponse({"ok": True, "result": result, "correlation_id": correlation_id})

    @new_app.api_route("/test/crash-alert", methods=["GET", "POST"])
    async def test_crash_alert(request: Request) -> JSONResponse:
        svc = _services(request)
        audit = svc.audit
        project = svc.settings.firebase_project_id
        body: Dict[str, Any] = {}
        if request.method == "POST":
            try:
                parsed = json.loads((await request.body()) or b"{}")
            except ValueError:
                parsed = {}
            body = parsed if isinstance(parsed, dict) else {}
        scenario_id = request.query_params.get("scenario") or body.get("scenario")

        if scenario_id == "list":
            return JSONResponse(
                {
                    "scenarios": scenario_listing(),
                    "usage": {
                        "random": "GET /test/crash-alert",
                        "specific": "GET /test/crash-alert?scenario=force_unwrap_user",
                        "all": "GET /test/crash-alert?scenario=all",
                        "custom": "POST /test/crash-alert with JSON body { title, subtitle, appVersion }",
                    },
                }
            )

        if scenario_id == "all":
            results = await run_scenarios(
                svc.pipeline,
                TEST_SCENARIOS,
                project=project,
                on_event_for=lambda sc: audit.recorder(audit.new_correlation_id()),
            )
            return JSONResponse({"success": True, "results": [r.model_dump(mode="json") for r in results]})

        if request.method == "POST" and body.get("title"):
            issue = custom_issue(body)
            label = None
        else:
            scenario = find_scenario(scenario_id) if scenario_id else pick_random_scenario()
            if scenario is None:
                return JSONResponse(
                    {
                        "error": f"scenario '{scenario_id}' not found",
                        "available": [{"id": sc.id, "description": sc.description} for sc in TEST_SCENARIOS],
                    },
                    status_code=400,
                )
            issue = scenario.to_issue()
            label = scenario.label

        correlation_id = audit.new_correlation_id()
        event = build_fake_event(issue, project=project, label=label)
        audit.write(correlation_id, "alert.received", {"event": event.model_dump(mode="json"), "test": True})
        outcome = await svc.pipeline.run(event, on_event=audit.recorder(correlation_id))
        audit.write(correlation_id, "pipeline.finished", {"outcome": outcome.model_dump(mode="json")})
        if outcome.status != "completed":
            return JSONResponse(
                {"success": False, "error": outcome.error or outcome.aborted_reason, "correlation_id": correlation_id},
                status_code=500,
            )
        return JSONResponse(
            {"success": True, "issue": issue.model_dump(mode="json"), "correlation_id": correlation_id}
        )

    return new_app


app = create_app()
