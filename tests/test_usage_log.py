import json

from livenote.usage_log import UsageLogger


def test_log_event_writes_jsonl(tmp_path):
    log_dir = tmp_path / "logs"
    usage = UsageLogger(log_dir=str(log_dir), enabled=True)
    usage.log_event("text", meta={"length": 12})
    usage.log_event("text_error", status=409)

    files = list(log_dir.glob("usage_*.jsonl"))
    assert len(files) == 1
    entries = [json.loads(line) for line in files[0].read_text(encoding="utf-8").splitlines()]
    assert [e["type"] for e in entries] == ["text", "text_error"]
    assert entries[0]["meta"] == {"length": 12}

    summary = usage.summarize_day()
    assert summary["events_text"] == 1
    assert summary["errors_text_error"] == 1


def test_disabled_logger_keeps_counts_only(tmp_path):
    log_dir = tmp_path / "logs"
    usage = UsageLogger(log_dir=str(log_dir), enabled=False)
    usage.log_event("analyze")
    assert not log_dir.exists()
    assert usage.summarize_day()["events_analyze"] == 1
