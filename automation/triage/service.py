"""Webhook handling for the triage bot.

``TriageService`` owns the event log, the pending-echo set and the
orchestrator for one process, and turns ``issues`` / ``issue_comment``
payloads into change records and tracker mutations.

Supported flows:
- issue_comment created: parse a ``triage: P-...`` instruction, check the
  author, then record the change and apply it on the tracker
- issues opened: the issue body counts as a comment, existing priority labels
  are recorded as added
- issues labeled / unlabeled: record priority label changes made by people,
  absorbing the echoes of our own label additions
"""

from __future__ import annotations

import logging
from typing import Any

from automation.triage.config import TriageConfig
from automation.triage.echoes import PendingEchoes
from automation.triage.event_log import EventLog
from automation.triage.instructions import (
    Instruction,
    annotate_rejected,
    is_authorized,
    is_priority,
    parse_instruction,
)
from automation.triage.orchestrator import MutationOrchestrator, MutationReport
from automation.triage.records import ChangeAction, ChangeRecord

logger = logging.getLogger("triage-bot")


class PayloadError(ValueError):
    pass


def _field(payload: dict[str, Any], *path: str) -> Any:
    value: Any = payload
    for key in path:
        if not isinstance(value, dict) or key not in value:
            raise PayloadError(f"payload missing {'.'.join(path)}")
        value = value[key]
    return value


def _label_names(issue: dict[str, Any]) -> list[str]:
    return [x["name"] for x in issue.get("labels") or [] if isinstance(x, dict) and x.get("name")]


class TriageService:
    def __init__(
        self,
        config: TriageConfig,
        log: EventLog,
        pending: PendingEchoes,
        orchestrator: MutationOrchestrator,
    ) -> None:
        self.config = config
        self.log = log
        self.pending = pending
        self.orchestrator = orchestrator

    def handle(self, event: str, payload: dict[str, Any]) -> str:
        if event == "issues":
            return self.process_issue(payload)
        if event == "issue_comment":
            return self.process_comment(payload)
        return f"Nope, unrecognised event: {event}"

    def _sanity_check(self, payload: dict[str, Any]) -> bool:
        owner = _field(payload, "repository", "owner", "login")
        name = _field(payload, "repository", "name")
        return owner == self.config.owner and name == self.config.repo

    def process_issue(self, payload: dict[str, Any]) -> str:
        if not self._sanity_check(payload):
            return "Nope, wrong repo"

        action = payload.get("action")
        issue = _field(payload, "issue")
        number = int(_field(issue, "number"))
        title = issue.get("title", "") or ""
        sender = _field(payload, "sender", "login")

        if action == "opened":
            labels = _label_names(issue)
            self.added_comment(number, title, issue.get("body") or "", sender, labels)
            for label in labels:
                self.added_label(number, title, label, sender)
            return "processed new issue"
        if action == "labeled":
            self.added_label(number, title, _field(payload, "label", "name"), sender)
            return "added label"
        if action == "unlabeled":
            self.removed_label(number, title, _field(payload, "label", "name"), sender)
            return "removed label"
        return f"Nope, unhandled action: {action}"

    def process_comment(self, payload: dict[str, Any]) -> str:
        if not self._sanity_check(payload):
            return "Nope, wrong repo"

        action = payload.get("action")
        if action != "created":
            return f"Nope, unhandled action: {action}"

        issue = _field(payload, "issue")
        self.added_comment(
            int(_field(issue, "number")),
            issue.get("title", "") or "",
            _field(payload, "comment", "body") or "",
            _field(payload, "sender", "login"),
            _label_names(issue),
        )
        return "processed new comment"

    def added_comment(
        self,
        issue_number: int,
        issue_title: str,
        comment: str,
        user: str,
        issue_labels: list[str],
    ) -> ChangeRecord | MutationReport | None:
        """Act on a triage instruction in ``comment``, if there is one."""
        instruction = parse_instruction(comment)
        if not isinstance(instruction, Instruction):
            return None

        if not is_authorized(user, self.config.triagers):
            record = ChangeRecord(
                action=ChangeAction.BAD_ACCESS,
                issue_number=issue_number,
                issue_title=issue_title,
                label=instruction.label,
                milestone=instruction.milestone,
                user=user,
                comment=annotate_rejected(comment, instruction),
            )
            self.log.append(record)
            logger.warning("rejected triage instruction issue=%s user=%s label=%s", issue_number, user, instruction.label)
            return record

        logger.info(
            "applying triage instruction issue=%s user=%s label=%s milestone=%s",
            issue_number,
            user,
            instruction.label,
            instruction.milestone or "-",
        )
        return self.orchestrator.apply(
            instruction,
            issue_number=issue_number,
            issue_title=issue_title,
            user=user,
            comment=comment,
            current_labels=issue_labels,
        )

    def added_label(self, issue_number: int, issue_title: str, label: str, user: str) -> ChangeRecord | None:
        if not is_priority(label):
            return None
        if self.pending.consume_if_pending(issue_number, label):
            logger.info("absorbed label echo issue=%s label=%s", issue_number, label)
            return None

        record = ChangeRecord(
            action=ChangeAction.ADD,
            issue_number=issue_number,
            issue_title=issue_title,
            label=label,
            user=user,
        )
        self.log.append(record)
        return record

    def removed_label(self, issue_number: int, issue_title: str, label: str, user: str) -> ChangeRecord | None:
        # Removal echoes are not deduplicated: every priority label removal is recorded.
        if not is_priority(label):
            return None

        record = ChangeRecord(
            action=ChangeAction.REMOVE,
            issue_number=issue_number,
            issue_title=issue_title,
            label=label,
            user=user,
        )
        self.log.append(record)
        return record
