from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class ChangeAction(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    BAD_ACCESS = "bad access"


@dataclass(frozen=True)
class ChangeRecord:
    """One entry of the event log; the issue title is a snapshot at record time."""

    action: ChangeAction
    issue_number: int
    issue_title: str
    label: str
    user: str
    milestone: str = ""
    comment: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["action"] = self.action.value
        return data

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ChangeRecord:
        return cls(
            action=ChangeAction(raw["action"]),
            issue_number=int(raw["issue_number"]),
            issue_title=raw.get("issue_title", "") or "",
            label=raw["label"],
            user=raw.get("user", "") or "",
            milestone=raw.get("milestone", "") or "",
            comment=raw.get("comment", "") or "",
        )
