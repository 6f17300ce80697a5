"""Unit tests for the next-action rule checker and disposition mapping."""

import pytest

from flowgate.core.rules import Disposition, disposition_target, is_plausible_next_action


@pytest.mark.parametrize(
    "text",
    [
        "Email CPA asking what docs are needed",
        "Call Dana about the lease renewal",
        "Schedule the dentist appointment",
        "  draft budget memo for Q3  ",
        "Buy printer paper",
    ],
)
def test_concrete_actions_pass(text: str) -> None:
    result = is_plausible_next_action(text)
    assert result.valid
    assert result.reason is None


def test_short_text_is_rejected() -> None:
    assert is_plausible_next_action("Call").reason == "Too short to be a concrete action"
    assert not is_plausible_next_action("   ").valid
    assert not is_plausible_next_action("").valid


def test_vague_placeholder_is_named() -> None:
    result = is_plausible_next_action("Figure out taxes")
    assert not result.valid
    assert result.reason == 'Vague placeholder: "figure out"'


def test_placeholder_match_is_case_insensitive() -> None:
    assert not is_plausible_next_action("Email Bob, details TBD").valid


def test_non_verb_start_is_rejected() -> None:
    result = is_plausible_next_action("Taxes for this year")
    assert not result.valid
    assert "verb" in result.reason


def test_verb_with_punctuation_still_counts() -> None:
    assert is_plausible_next_action("Call: the plumber at noon").valid


def test_inflected_verb_counts() -> None:
    assert is_plausible_next_action("Emailing Sam the slides").valid


@pytest.mark.parametrize(
    "disposition,expected",
    [
        (Disposition.NEXT_ACTION, ("task", "actionable")),
        (Disposition.PROJECT, ("project", "project")),
        (Disposition.WAITING, ("waiting", "waiting")),
        (Disposition.SOMEDAY, ("someday", "someday")),
        (Disposition.REFERENCE, ("reference", "reference")),
        (Disposition.TRASH, ("trash", "archived")),
    ],
)
def test_disposition_target(disposition: Disposition, expected: tuple[str, str]) -> None:
    assert disposition_target(disposition) == expected


def test_disposition_accepts_plain_string() -> None:
    assert disposition_target("trash") == ("trash", "archived")
