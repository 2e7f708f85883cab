#!/usr/bin/env python3
"""
Drive a running listing optimizer server through the whole wizard.

Usage:
  python scripts/run_listing_flow.py \
    --base-url http://localhost:8000 \
    --platform AMAZON \
    --title "Wireless Earbuds X1" \
    --competitor https://www.amazon.co.jp/dp/B000000001 \
    --reference-image data/earbuds.jpg \
    --output logs/listing_flow.jsonl
"""
from __future__ import annotations

import argparse
import json
import mimetypes
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests


class FlowError(Exception):
    pass


def call(
    session: requests.Session,
    method: str,
    url: str,
    timeout: int,
    transcript: List[Dict[str, Any]],
    **kwargs: Any,
) -> Dict[str, Any]:
    started = time.time()
    try:
        resp = session.request(method, url, timeout=timeout, **kwargs)
    except requests.RequestException as exc:
        raise FlowError(f"{method} {url} failed: {exc}") from exc

    try:
        data = resp.json()
    except ValueError:
        data = {"_parse_error": resp.text}

    transcript.append(
        {
            "method": method,
            "url": url,
            "http_status": resp.status_code,
            "elapsed_ms": int((time.time() - started) * 1000),
            "step": data.get("step") if isinstance(data, dict) else None,
            "error": data.get("error") or data.get("detail") if isinstance(data, dict) else None,
        }
    )
    if not resp.ok:
        detail = data.get("detail") if isinstance(data, dict) else resp.text
        raise FlowError(f"{method} {url} returned {resp.status_code}: {detail}")
    return data


def run_flow(args: argparse.Namespace, transcript: List[Dict[str, Any]]) -> Dict[str, Any]:
    base = f"{args.base_url.rstrip('/')}/api/v1/sessions"
    http = requests.Session()

    view = call(http, "POST", base, args.timeout, transcript)
    session_url = f"{base}/{view['session_id']}"
    print(f"[session] {view['session_id']}")

    call(http, "POST", f"{session_url}/platform", args.timeout, transcript, json={"platform": args.platform})

    if args.url:
        call(http, "PATCH", f"{session_url}/input", args.timeout, transcript, json={"product_url": args.url})
        view = call(http, "POST", f"{session_url}/extract", args.timeout, transcript)
        print(f"[extract] title={view['input']['title']!r} error={view['error']!r}")

    changes: Dict[str, Any] = {"competitor_urls": args.competitor or [""]}
    if args.title:
        changes["title"] = args.title
    if args.description:
        changes["description"] = args.description
    call(http, "PATCH", f"{session_url}/input", args.timeout, transcript, json=changes)

    view = call(http, "POST", f"{session_url}/diagnosis", args.timeout, transcript)
    if view["step"] != "DIAGNOSIS":
        raise FlowError(f"Diagnosis did not finish: {view['error']}")
    print(f"[diagnosis] competitors={len(view['diagnosis']['competitor_analysis'])}")

    view = call(http, "POST", f"{session_url}/optimization", args.timeout, transcript)
    if view["step"] != "OPTIMIZATION":
        raise FlowError(f"Optimization did not finish: {view['error']}")
    optimization = view["optimization"]
    if optimization["empty"]:
        raise FlowError(optimization["message"])
    print(f"[optimization] plans={len(optimization['plans'])}")

    view = call(http, "POST", f"{session_url}/plans/{args.plan}/select", args.timeout, transcript)
    print(f"[plan] {view['selected_plan']['name']}")

    if not args.reference_image:
        return view

    image_path = Path(args.reference_image)
    mime_type = mimetypes.guess_type(image_path.name)[0] or "image/jpeg"
    with image_path.open("rb") as f:
        view = call(
            http,
            "POST",
            f"{session_url}/reference-image",
            args.timeout,
            transcript,
            files={"image": (image_path.name, f, mime_type)},
        )

    slots = view["image_generation"]["slots"]
    for slot in slots[: args.images]:
        view = call(http, "POST", f"{session_url}/images/{slot['id']}", args.timeout, transcript)
        generated = next(item for item in view["image_generation"]["slots"] if item["id"] == slot["id"])
        print(f"[image {slot['id']}] {generated['status']}")
    return view


def write_transcript(path: Path, rows: List[Dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(row, ensure_ascii=False))
            f.write("\n")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run the listing wizard end to end.")
    parser.add_argument("--base-url", default="http://localhost:8000", help="API base URL.")
    parser.add_argument("--platform", default="AMAZON", help="YAHOO, RAKUTEN or AMAZON.")
    parser.add_argument("--url", default="", help="Product URL to extract facts from.")
    parser.add_argument("--title", default="", help="Product title (overrides extraction).")
    parser.add_argument("--description", default="", help="Product description.")
    parser.add_argument("--competitor", action="append", help="Competitor URL (up to 3).")
    parser.add_argument("--plan", type=int, default=0, help="Plan index to select.")
    parser.add_argument("--reference-image", default="", help="Reference image for image generation.")
    parser.add_argument("--images", type=int, default=1, help="How many image slots to generate.")
    parser.add_argument("--output", default="logs/listing_flow.jsonl", help="Where to write the transcript.")
    parser.add_argument("--timeout", type=int, default=300, help="Per-request timeout in seconds.")
    args = parser.parse_args(argv)

    if args.competitor and len(args.competitor) > 3:
        print("[error] at most 3 competitor URLs are allowed", file=sys.stderr)
        return 1

    transcript: List[Dict[str, Any]] = []
    status = 0
    try:
        run_flow(args, transcript)
    except FlowError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        status = 1
    finally:
        write_transcript(Path(args.output), transcript)

    print(f"\nDone. {len(transcript)} calls -> transcript saved to {args.output}")
    return status


if __name__ == "__main__":
    raise SystemExit(main())
