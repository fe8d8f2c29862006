from __future__ import annotations

from automation.triage.instructions import (
    NO_INSTRUCTION,
    Instruction,
    NoInstruction,
    annotate_rejected,
    is_authorized,
    is_priority,
    parse_instruction,
)


def test_parse_label_and_milestone() -> None:
    result = parse_instruction("Looks bad.\n\ntriage: P-high (1.2.0)\n")

    assert isinstance(result, Instruction)
    assert result.label == "P-high"
    assert result.milestone == "1.2.0"


def test_parse_label_without_milestone() -> None:
    result = parse_instruction("triage: P-medium")

    assert result == Instruction(label="P-medium", milestone="", matched="triage: P-medium")


def test_parse_is_case_insensitive_on_triage_word() -> None:
    for text in ("TRIAGE: P-low", "Triage P-low", "triage:\tP-low"):
        result = parse_instruction(text)
        assert isinstance(result, Instruction), text
        assert result.label == "P-low"


def test_label_must_be_separated_by_whitespace() -> None:
    assert parse_instruction("triage:P-low") is NO_INSTRUCTION
    assert parse_instruction("triageP-low") is NO_INSTRUCTION


def test_parse_nominated_label() -> None:
    result = parse_instruction("triage I-nominated")

    assert isinstance(result, Instruction)
    assert result.label == "I-nominated"


def test_parse_milestone_with_spaces_and_dots() -> None:
    result = parse_instruction("triage: P-high (Rust 1.0 beta)")

    assert isinstance(result, Instruction)
    assert result.milestone == "Rust 1.0 beta"


def test_parse_uses_first_instruction_only() -> None:
    result = parse_instruction("triage: P-low\nactually triage: P-high (2.0)")

    assert isinstance(result, Instruction)
    assert result.label == "P-low"
    assert result.milestone == ""


def test_no_instruction_without_triage_word() -> None:
    assert parse_instruction("This should be P-high, I think.") is NO_INSTRUCTION
    assert isinstance(parse_instruction(""), NoInstruction)
    assert isinstance(parse_instruction(None), NoInstruction)


def test_no_instruction_for_untracked_label() -> None:
    assert parse_instruction("triage: A-diagnostics") is NO_INSTRUCTION


def test_triage_must_be_a_whole_word() -> None:
    assert parse_instruction("pretriage: P-high") is NO_INSTRUCTION


def test_is_priority() -> None:
    assert is_priority("P-high")
    assert is_priority("I-nominated")
    assert not is_priority("I-wrong")
    assert not is_priority("A-parser")


def test_is_authorized() -> None:
    triagers = frozenset({"alice", "bob"})

    assert is_authorized("alice", triagers)
    assert not is_authorized("mallory", triagers)
    assert not is_authorized("Alice", triagers)


def test_annotate_rejected_keeps_comment_and_match() -> None:
    instruction = parse_instruction("please triage: P-high (1.2.0)")
    assert isinstance(instruction, Instruction)

    text = annotate_rejected("please triage: P-high (1.2.0)", instruction)

    assert text.startswith("please triage: P-high (1.2.0)\n[match: ")
    assert "triage: P-high (1.2.0)" in text.splitlines()[1]
