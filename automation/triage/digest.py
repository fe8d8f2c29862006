"""Digest of priority changes: rendering, storage and production."""

from __future__ import annotations

import html
import logging
import re
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from automation.triage.config import TriageConfig, load_recipients
from automation.triage.event_log import EventLog
from automation.triage.instructions import NOMINATED_LABEL
from automation.triage.mailer import Mailer
from automation.triage.records import ChangeAction, ChangeRecord

logger = logging.getLogger("triage-bot")

DIGEST_ID_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z$")
EMPTY_DIGEST = "<p>No priority changes since the last digest.</p>"


class DigestNotFound(LookupError):
    pass


def _now() -> datetime:
    return datetime.now(UTC)


def digest_id(moment: datetime) -> str:
    stamp = moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return re.sub(r"[:.]", "-", stamp)


def _issue_link(config: TriageConfig, record: ChangeRecord) -> str:
    url = f"https://github.com/{config.owner}/{config.repo}/issues/{record.issue_number}"
    return f'<a href="{html.escape(url)}">#{record.issue_number}</a> {html.escape(record.issue_title)}'


def _describe(record: ChangeRecord) -> str:
    verb = "added" if record.action is ChangeAction.ADD else "removed"
    text = f"<code>{html.escape(record.label)}</code> {verb} by {html.escape(record.user)}"
    if record.milestone:
        text += f" (milestone {html.escape(record.milestone)})"
    return text


def _nominations(records: list[ChangeRecord], config: TriageConfig) -> list[str]:
    items = [
        f"<li>{_issue_link(config, r)}: nominated by {html.escape(r.user)}</li>"
        for r in records
        if r.action is ChangeAction.ADD and r.label == NOMINATED_LABEL
    ]
    return ["<h3>Nominated</h3>", "<ul>", *items, "</ul>"] if items else []


def _priority_changes(records: list[ChangeRecord], config: TriageConfig) -> list[str]:
    by_issue: dict[int, list[ChangeRecord]] = {}
    for r in records:
        if r.action is ChangeAction.BAD_ACCESS:
            continue
        if r.action is ChangeAction.ADD and r.label == NOMINATED_LABEL:
            continue
        by_issue.setdefault(r.issue_number, []).append(r)
    if not by_issue:
        return []

    lines = ["<h3>Priority changes</h3>", "<ul>"]
    for changes in by_issue.values():
        lines.append(f"<li>{_issue_link(config, changes[0])}")
        lines.append("<ul>")
        lines.extend(f"<li>{_describe(r)}</li>" for r in changes)
        lines.append("</ul>")
        lines.append("</li>")
    lines.append("</ul>")
    return lines


def _rejected(records: list[ChangeRecord], config: TriageConfig) -> list[str]:
    items = [
        f"<li>{_issue_link(config, r)}: <code>{html.escape(r.label)}</code> requested by "
        f"{html.escape(r.user)}<pre>{html.escape(r.comment)}</pre></li>"
        for r in records
        if r.action is ChangeAction.BAD_ACCESS
    ]
    return ["<h3>Rejected instructions</h3>", "<ul>", *items, "</ul>"] if items else []


def render_digest(records: list[ChangeRecord], config: TriageConfig) -> str:
    lines = [f"<h2>Triage digest for {html.escape(config.full_name)}</h2>"]
    sections = _nominations(records, config) + _priority_changes(records, config) + _rejected(records, config)
    lines.extend(sections or [EMPTY_DIGEST])
    return "\n".join(lines) + "\n"


class DigestStore:
    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path(self, ident: str) -> Path:
        if not DIGEST_ID_RE.match(ident or ""):
            raise DigestNotFound(f"not a digest id: {ident!r}")
        return self.directory / f"{ident}.html"

    def save(self, ident: str, body: str) -> Path:
        path = self._path(ident)
        self.directory.mkdir(parents=True, exist_ok=True)
        path.write_text(body, encoding="utf-8")
        return path

    def load(self, ident: str) -> str:
        path = self._path(ident)
        if not path.exists():
            raise DigestNotFound(f"no digest stored for {ident}")
        return path.read_text(encoding="utf-8")


class DigestProducer:
    def __init__(
        self,
        log: EventLog,
        store: DigestStore,
        config: TriageConfig,
        mailer: Mailer,
        recipients_file: Path,
        now: Callable[[], datetime] = _now,
    ) -> None:
        self.log = log
        self.store = store
        self.config = config
        self.mailer = mailer
        self.recipients_file = Path(recipients_file)
        self.now = now

    def preview(self) -> str:
        return render_digest(self.log.all(), self.config)

    def produce(self) -> str:
        # The emptied log is only written once the report is on disk.
        records = self.log.drain()
        ident = digest_id(self.now())
        body = render_digest(records, self.config)
        permalink = f"{self.config.digest.permalink_base}?date={ident}"
        body += f'\n<p><a href="{html.escape(permalink)}">Permalink to this digest</a></p>'
        try:
            self.store.save(ident, body)
        except OSError:
            logger.exception("failed to store digest id=%s; restoring %s records", ident, len(records))
            self.log.restore(records)
            raise
        self.log.persist()
        logger.info("produced digest id=%s records=%s", ident, len(records))

        try:
            recipients = load_recipients(self.recipients_file)
        except FileNotFoundError:
            logger.warning("recipient list missing; digest not mailed path=%s", self.recipients_file)
            return body
        except (OSError, ValueError) as exc:
            logger.warning("recipient list unreadable; digest not mailed path=%s err=%s", self.recipients_file, exc)
            return body
        self.mailer.deliver(recipients, body)
        return body

    def retrieve(self, ident: str) -> str:
        body = self.store.load(ident)
        return (
            "<html>\n<head>\n"
            f"<title>Triage digest: {html.escape(ident)}</title>\n"
            "</head>\n<body>\n"
            f"{body}"
            "\n</body>\n</html>\n"
        )
