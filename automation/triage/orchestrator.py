"""Apply an accepted priority instruction to the tracker.

Order of operations for one instruction:

1. remove every priority label currently on the issue (calls run side by
   side; a failure for one label does not stop the others);
2. once all removals have settled, request the milestone if one was given
   (nothing waits for it);
3. mark the new label as pending, record the ``add`` change, then add the
   label on the tracker.

Step 3 must mark before the add call goes out, otherwise the ``labeled``
webhook it triggers could be recorded a second time. Remote failures are
logged and never rolled back: the log keeps the intended change.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, wait
from dataclasses import dataclass, field
from typing import Protocol

from automation.triage.echoes import PendingEchoes
from automation.triage.event_log import EventLog
from automation.triage.instructions import Instruction, is_priority
from automation.triage.records import ChangeAction, ChangeRecord
from automation.triage.tracker import CallResult

logger = logging.getLogger("triage-bot")


class Tracker(Protocol):
    def remove_label(self, issue_number: int, label: str) -> CallResult: ...

    def add_label(self, issue_number: int, label: str) -> CallResult: ...

    def set_milestone(self, issue_number: int, title: str) -> CallResult: ...


@dataclass
class MutationReport:
    record: ChangeRecord
    removals: list[CallResult] = field(default_factory=list)
    milestone: Future[CallResult] | None = None
    added: CallResult | None = None


def _log_result(result: CallResult) -> None:
    if result.ok:
        logger.info("tracker %s ok issue=%s target=%s", result.operation, result.issue_number, result.target)
        return
    logger.warning(
        "tracker %s failed issue=%s target=%s status=%s err=%s",
        result.operation,
        result.issue_number,
        result.target,
        result.status,
        result.error,
    )


def _log_future(future: Future[CallResult]) -> None:
    exc = future.exception()
    if exc is not None:
        logger.warning("tracker call raised err=%s", exc)
        return
    _log_result(future.result())


class MutationOrchestrator:
    def __init__(self, tracker: Tracker, pending: PendingEchoes, log: EventLog, executor: Executor) -> None:
        self.tracker = tracker
        self.pending = pending
        self.log = log
        self.executor = executor

    def apply(
        self,
        instruction: Instruction,
        *,
        issue_number: int,
        issue_title: str,
        user: str,
        comment: str,
        current_labels: list[str],
    ) -> MutationReport:
        record = ChangeRecord(
            action=ChangeAction.ADD,
            issue_number=issue_number,
            issue_title=issue_title,
            label=instruction.label,
            milestone=instruction.milestone,
            user=user,
            comment=comment,
        )
        report = MutationReport(record=record)

        # No need to record removals here, their unlabeled hooks will arrive later.
        removals = [
            self.executor.submit(self.tracker.remove_label, issue_number, label)
            for label in current_labels
            if is_priority(label)
        ]
        wait(removals)
        for future in removals:
            exc = future.exception()
            if exc is not None:
                logger.warning("tracker remove_label raised issue=%s err=%s", issue_number, exc)
                continue
            result = future.result()
            _log_result(result)
            report.removals.append(result)

        if instruction.milestone:
            report.milestone = self.executor.submit(self.tracker.set_milestone, issue_number, instruction.milestone)
            report.milestone.add_done_callback(_log_future)

        self.pending.mark_pending(issue_number, instruction.label)
        self.log.append(record)
        try:
            report.added = self.tracker.add_label(issue_number, instruction.label)
        except Exception as exc:  # noqa: BLE001
            logger.warning("tracker add_label raised issue=%s label=%s err=%s", issue_number, instruction.label, exc)
        else:
            _log_result(report.added)
        return report
