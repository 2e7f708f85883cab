import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fastapi import Request
from starlette.datastructures import FormData, UploadFile

logger = logging.getLogger("listing-optimizer")

DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent / "logs" / "requests"
_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S_%f"
_LOGGED_METHODS = {"POST", "PUT", "PATCH"}


def _slug(path: str) -> str:
    slug = "".join(ch if ch.isalnum() else "_" for ch in path.strip("/"))
    return slug[:120] or "root"


def _collect(items: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for key, value in items:
        if key not in payload:
            payload[key] = value
        elif isinstance(payload[key], list):
            payload[key].append(value)
        else:
            payload[key] = [payload[key], value]
    return payload


def _describe_form(form: FormData) -> Dict[str, Any]:
    items: List[Tuple[str, Any]] = []
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            # Uploaded images are never written to disk, only their metadata.
            items.append(
                (key, {"filename": value.filename or "", "content_type": value.content_type or "", "size_bytes": value.size})
            )
        else:
            items.append((key, value))
    return _collect(items)


async def _form_from_body(request: Request, body: bytes) -> Dict[str, Any]:
    async def receive() -> Dict[str, Any]:
        return {"type": "http.request", "body": body, "more_body": False}

    form = await Request(request.scope, receive).form()
    try:
        return _describe_form(form)
    finally:
        await form.close()


class RequestLogWriter:
    """Writes one JSON file per API request and prunes old files."""

    def __init__(self, directory: Path = DEFAULT_LOG_DIR, retention_days: int = 7, max_files: int = 1000):
        self.directory = directory
        self.retention_days = retention_days
        self.max_files = max_files

    async def build_entry(self, request: Request, body: Optional[bytes] = None) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "timestamp_utc": datetime.utcnow().isoformat(timespec="seconds"),
            "method": request.method,
            "path": request.url.path,
            "query": _collect(request.query_params.multi_items()),
            "client": {
                "host": request.client.host if request.client else "",
                "forwarded_for": request.headers.get("x-forwarded-for", ""),
            },
            "headers": {
                "content_type": request.headers.get("content-type", ""),
                "user_agent": request.headers.get("user-agent", ""),
                "content_length": request.headers.get("content-length", ""),
            },
        }
        if body is None or request.method not in _LOGGED_METHODS:
            return entry

        entry["body_size_bytes"] = len(body)
        content_type = entry["headers"]["content_type"]
        if not body:
            return entry
        if "application/json" in content_type:
            try:
                entry["body"] = {"json": json.loads(body)}
            except ValueError:
                entry["body"] = {"raw": body[:2000].decode("utf-8", errors="replace")}
        elif "multipart/form-data" in content_type or "application/x-www-form-urlencoded" in content_type:
            try:
                entry["body"] = {"form": await _form_from_body(request, body)}
            except Exception as exc:
                entry["body"] = {"parse_error": str(exc)}
        return entry

    def write(self, entry: Dict[str, Any], status_code: int, duration_ms: float, error: str = "") -> Optional[Path]:
        record = dict(entry)
        record["response"] = {"status_code": status_code, "duration_ms": round(duration_ms, 2)}
        if error:
            record["response"]["error"] = error
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            stamp = datetime.utcnow().strftime(_TIMESTAMP_FORMAT)
            path = self._unique_path(f"{stamp}_{record.get('method', 'UNKNOWN')}_{_slug(record.get('path', ''))}")
            with path.open("w", encoding="utf-8") as f:
                json.dump(record, f, ensure_ascii=False, indent=2, default=str)
            self.prune()
            return path
        except OSError as exc:
            logger.warning("Failed to write request log: %s", exc)
            return None

    def _unique_path(self, basename: str) -> Path:
        candidate = self.directory / f"{basename}.json"
        counter = 1
        while candidate.exists():
            candidate = self.directory / f"{basename}_{counter}.json"
            counter += 1
        return candidate

    def _log_files(self) -> List[Path]:
        return [item for item in self.directory.iterdir() if item.is_file() and item.suffix == ".json"]

    def prune(self) -> None:
        if self.retention_days > 0:
            cutoff = datetime.utcnow() - timedelta(days=self.retention_days)
            for item in self._log_files():
                if datetime.utcfromtimestamp(item.stat().st_mtime) < cutoff:
                    item.unlink(missing_ok=True)

        if self.max_files > 0:
            remaining = sorted(self._log_files(), key=lambda p: p.stat().st_mtime)
            for item in remaining[: max(0, len(remaining) - self.max_files)]:
                item.unlink(missing_ok=True)
