import json
import os
import time

from listing_optimizer.request_logging import RequestLogWriter


def _entry(path="/api/v1/sessions/abc/diagnosis"):
    return {"method": "POST", "path": path, "query": {}}


def test_write_creates_json_file_with_response(tmp_path):
    writer = RequestLogWriter(directory=tmp_path, retention_days=0, max_files=0)
    path = writer.write(_entry(), 200, 12.3456)
    record = json.loads(path.read_text(encoding="utf-8"))
    assert record["path"] == "/api/v1/sessions/abc/diagnosis"
    assert record["response"] == {"status_code": 200, "duration_ms": 12.35}
    assert "api_v1_sessions_abc_diagnosis" in path.name


def test_write_records_error(tmp_path):
    writer = RequestLogWriter(directory=tmp_path, retention_days=0, max_files=0)
    path = writer.write(_entry(), 500, 1.0, error="boom")
    assert json.loads(path.read_text(encoding="utf-8"))["response"]["error"] == "boom"


def test_prune_keeps_newest_files(tmp_path):
    writer = RequestLogWriter(directory=tmp_path, retention_days=0, max_files=2)
    for idx in range(4):
        writer.write(_entry(f"/api/v1/x{idx}"), 200, 1.0)
    assert len(list(tmp_path.glob("*.json"))) == 2


def test_prune_removes_expired_files(tmp_path):
    old = tmp_path / "old.json"
    old.write_text("{}", encoding="utf-8")
    expired = time.time() - 10 * 86400
    os.utime(old, (expired, expired))
    writer = RequestLogWriter(directory=tmp_path, retention_days=7, max_files=0)
    writer.write(_entry(), 200, 1.0)
    assert not old.exists()
    assert len(list(tmp_path.glob("*.json"))) == 1
