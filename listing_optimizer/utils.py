import base64
import binascii
import json
import re
from typing import Any, List, Tuple
from urllib.parse import unquote_plus, urlsplit

from .constants import TRACKING_PARAM_EXACT, TRACKING_PARAM_PREFIXES
from .errors import ParseError

_FENCE_OPEN_RE = re.compile(r"^```[\w-]*\s*")
_FENCE_CLOSE_RE = re.compile(r"\s*```$")
_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[^,]*)?;base64,(?P<data>.*)$", re.DOTALL)
_DEFAULT_PORTS = {"http": 80, "https": 443}


def compress_whitespace(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def image_bytes_to_data_url(data: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def split_data_url(value: str, default_mime: str = "image/png") -> Tuple[str, bytes]:
    """Decode a base64 data URL (or a bare base64 string) into (mime, bytes)."""
    match = _DATA_URL_RE.match(value.strip())
    if match:
        mime_type = match.group("mime") or default_mime
        payload = match.group("data")
    else:
        mime_type = default_mime
        payload = value.strip()
    try:
        return mime_type, base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 image payload: {exc}") from exc


def strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    if not cleaned.startswith("```"):
        return cleaned
    cleaned = _FENCE_OPEN_RE.sub("", cleaned, count=1)
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_json_response(raw: str) -> Any:
    """Reduce free-form model output to a JSON value.

    Markdown fences are stripped first. If the remaining text still does not
    parse, the span between the first ``{`` and the last ``}`` of the
    original text is tried. Raises ParseError when both attempts fail.
    """
    if raw is None:
        raise ParseError("Model returned no text.", raw_text="")
    cleaned = strip_code_fence(raw)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    start = raw.find("{")
    end = raw.rfind("}")
    if start != -1 and end != -1 and end > start:
        try:
            return json.loads(raw[start : end + 1])
        except json.JSONDecodeError as exc:
            raise ParseError(f"Failed to parse JSON response: {exc}", raw_text=raw) from exc
    raise ParseError("No JSON object found in response.", raw_text=raw)


def _is_tracking_param(key: str) -> bool:
    if key in TRACKING_PARAM_EXACT:
        return True
    return any(key.startswith(prefix) for prefix in TRACKING_PARAM_PREFIXES)


def clean_url_for_search(url: str) -> str:
    """Drop tracking query parameters so search grounding hits the real page.

    Anything that does not look like an absolute URL is returned untouched.
    """
    try:
        parts = urlsplit(url.strip())
    except (AttributeError, ValueError):
        return url
    if not parts.scheme or not parts.hostname:
        return url
    try:
        port = parts.port
    except ValueError:
        return url

    # Same origin as a browser reports it: no userinfo, no default port.
    host = f"[{parts.hostname}]" if ":" in parts.hostname else parts.hostname
    if port is not None and port != _DEFAULT_PORTS.get(parts.scheme.lower()):
        host = f"{host}:{port}"

    kept: List[str] = []
    for item in parts.query.split("&"):
        if not item:
            continue
        key = unquote_plus(item.split("=", 1)[0])
        if _is_tracking_param(key):
            continue
        kept.append(item)

    cleaned = f"{parts.scheme}://{host}{parts.path or '/'}"
    if kept:
        cleaned = f"{cleaned}?{'&'.join(kept)}"
    return cleaned

