#!/usr/bin/env python3
"""Verify (and optionally repair) the webhook events the triage bot needs."""

from __future__ import annotations

import argparse
import sys
from typing import Any
from urllib import error

from automation.triage.config import GH_API, GH_TOKEN
from automation.triage.tracker import TrackerClient

REQUIRED_EVENTS = {"issues", "issue_comment"}


def select_hook(hooks: list[dict[str, Any]], hook_id: int | None, url_contains: str | None) -> dict[str, Any] | None:
    if hook_id:
        return next((h for h in hooks if int(h.get("id", 0)) == hook_id), None)
    if url_contains:
        return next((h for h in hooks if url_contains in (h.get("config", {}) or {}).get("url", "")), None)
    if len(hooks) == 1:
        return hooks[0]
    return None


def main(argv: list[str] | None = None, client: TrackerClient | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--repo", required=True, help="owner/repo")
    parser.add_argument("--hook-id", type=int, help="Webhook ID to check/update")
    parser.add_argument("--url-contains", help="Find hook by URL substring")
    parser.add_argument("--apply", action="store_true", help="Patch webhook to include required events")
    args = parser.parse_args(argv)

    if client is None:
        if not GH_TOKEN:
            print("error: GITHUB_TOKEN is required", file=sys.stderr)
            return 2
        owner, repo = args.repo.split("/", 1)
        client = TrackerClient(owner, repo, GH_TOKEN, api_url=GH_API)

    try:
        hooks = client.list_hooks()
    except (OSError, ValueError) as exc:
        print(f"error: could not list webhooks: {exc}", file=sys.stderr)
        return 2

    selected = select_hook(hooks, args.hook_id, args.url_contains)
    if not selected:
        print("error: could not uniquely select webhook; pass --hook-id or --url-contains", file=sys.stderr)
        return 2

    hook_id = int(selected["id"])
    current_events = set(selected.get("events", []))
    missing = sorted(REQUIRED_EVENTS - current_events)

    print(f"hook_id={hook_id}")
    print(f"url={(selected.get('config', {}) or {}).get('url', '')}")
    print(f"current_events={sorted(current_events)}")

    if not missing:
        print("status=ok all required events present")
        return 0

    print(f"status=missing required_events={missing}")
    if not args.apply:
        return 1

    patched_events = sorted(current_events | REQUIRED_EVENTS)
    try:
        client.update_hook_events(hook_id, patched_events)
    except error.HTTPError as exc:
        body = exc.read().decode("utf-8", errors="ignore")
        print(f"error: patch failed status={exc.code} body={body}", file=sys.stderr)
        return 2

    print(f"status=patched events={patched_events}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
