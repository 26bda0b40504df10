from __future__ import annotations

import json

from crashfix.telemetry.audit import AuditLogger


def test_audit_logger_appends_jsonl(tmp_path) -> None:
    path = tmp_path / "nested" / "audit.jsonl"
    audit = AuditLogger(str(path))
    cid = audit.new_correlation_id()

    audit.write(cid, "alert.received", {"issue": "abc"})
    on_event = audit.recorder(cid)
    on_event("source.resolved", {"tier": "search"})

    records = [json.loads(ln) for ln in path.read_text(encoding="utf-8").splitlines()]
    assert [r["event_type"] for r in records] == ["alert.received", "source.resolved"]
    assert {r["correlation_id"] for r in records} == {cid}
    assert records[0]["actor"] == "crashfix"
    assert records[1]["payload"] == {"tier": "search"}
    assert records[0]["ts"].endswith("Z")


def test_correlation_ids_are_unique(tmp_path) -> None:
    audit = AuditLogger(str(tmp_path / "a.jsonl"))
    assert audit.new_correlation_id() != audit.new_correlation_id()
