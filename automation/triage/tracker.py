"""Thin GitHub REST client for the mutations the bot performs.

Issue mutations never raise: each returns a ``CallResult`` that the caller
logs. Webhook administration calls raise, since they back a CLI.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any
from urllib import error, parse, request

DEFAULT_API_URL = "https://api.github.com"


@dataclass(frozen=True)
class CallResult:
    operation: str
    issue_number: int
    target: str
    ok: bool
    status: int | None = None
    error: str = ""


class TrackerClient:
    def __init__(
        self,
        owner: str,
        repo: str,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 15,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @property
    def repo_path(self) -> str:
        return f"/repos/{parse.quote(self.owner)}/{parse.quote(self.repo)}"

    def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> tuple[int, Any]:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = request.Request(f"{self.api_url}{path}", data=data, method=method)
        req.add_header("Accept", "application/vnd.github+json")
        req.add_header("Authorization", f"Bearer {self.token}")
        req.add_header("X-GitHub-Api-Version", "2022-11-28")
        if data is not None:
            req.add_header("Content-Type", "application/json")
        with request.urlopen(req, timeout=self.timeout) as resp:
            body = resp.read().decode("utf-8")
            return resp.status, (json.loads(body) if body.strip() else None)

    def _call(
        self,
        operation: str,
        issue_number: int,
        target: str,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> CallResult:
        if not self.token:
            return CallResult(operation, issue_number, target, ok=False, error="GITHUB_TOKEN is not set")
        try:
            status, _ = self._request(method, path, payload)
        except (OSError, ValueError) as exc:
            return _failure(operation, issue_number, target, exc)
        return CallResult(operation, issue_number, target, ok=True, status=status)

    def remove_label(self, issue_number: int, label: str) -> CallResult:
        path = f"{self.repo_path}/issues/{issue_number}/labels/{parse.quote(label, safe='')}"
        return self._call("remove_label", issue_number, label, "DELETE", path)

    def add_label(self, issue_number: int, label: str) -> CallResult:
        path = f"{self.repo_path}/issues/{issue_number}/labels"
        return self._call("add_label", issue_number, label, "POST", path, {"labels": [label]})

    def set_milestone(self, issue_number: int, title: str) -> CallResult:
        # The issues API takes a milestone number, so resolve the title first.
        if not self.token:
            return CallResult("set_milestone", issue_number, title, ok=False, error="GITHUB_TOKEN is not set")
        try:
            _, milestones = self._request("GET", f"{self.repo_path}/milestones?state=all&per_page=100")
        except (OSError, ValueError) as exc:
            return _failure("set_milestone", issue_number, title, exc)
        number = next((int(m["number"]) for m in milestones or [] if m.get("title") == title), None)
        if number is None:
            return CallResult("set_milestone", issue_number, title, ok=False, error=f"no milestone titled {title!r}")
        path = f"{self.repo_path}/issues/{issue_number}"
        return self._call("set_milestone", issue_number, title, "PATCH", path, {"milestone": number})

    def list_hooks(self) -> list[dict[str, Any]]:
        _, hooks = self._request("GET", f"{self.repo_path}/hooks")
        if not isinstance(hooks, list):
            raise ValueError("unexpected API response")
        return hooks

    def update_hook_events(self, hook_id: int, events: list[str]) -> dict[str, Any]:
        _, hook = self._request("PATCH", f"{self.repo_path}/hooks/{hook_id}", {"events": events, "active": True})
        return hook


def _failure(operation: str, issue_number: int, target: str, exc: Exception) -> CallResult:
    if isinstance(exc, error.HTTPError):
        body = exc.read().decode("utf-8", errors="ignore")
        return CallResult(operation, issue_number, target, ok=False, status=exc.code, error=body or str(exc))
    return CallResult(operation, issue_number, target, ok=False, error=str(exc))
