"""Priority-change instructions posted in issue comments.

An instruction looks like ``triage: P-high (1.2.0)``: the word ``triage``
(any case, optional colon), at least one space or tab, a priority label,
and an optional milestone in parentheses. Only the first instruction in a
comment counts.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

NOMINATED_LABEL = "I-nominated"
PRIORITY_PREFIX = "P-"

TRIAGE_RE = re.compile(
    r"\b(?i:triage):?[ \t]+"
    r"(I-nominated|P-[a-zA-Z0-9\-]+)\b"
    r" *(?:\(([a-zA-Z0-9\-. ]*)\))?"
)


@dataclass(frozen=True)
class NoInstruction:
    pass


@dataclass(frozen=True)
class Instruction:
    label: str
    milestone: str = ""
    matched: str = ""


NO_INSTRUCTION = NoInstruction()


def is_priority(label: str) -> bool:
    return label.startswith(PRIORITY_PREFIX) or label == NOMINATED_LABEL


def parse_instruction(text: str | None) -> Instruction | NoInstruction:
    match = TRIAGE_RE.search(text or "")
    if not match:
        return NO_INSTRUCTION
    return Instruction(
        label=match.group(1),
        milestone=(match.group(2) or "").strip(),
        matched=match.group(0).strip(),
    )


def is_authorized(user: str, triagers: Iterable[str]) -> bool:
    return user in set(triagers)


def annotate_rejected(comment: str, instruction: Instruction) -> str:
    """Comment text kept on a BadAccess record, with what the parser saw."""
    return f"{comment}\n[match: {instruction.matched}, {instruction.label}, {instruction.milestone}]"
