from __future__ import annotations

import pytest

from meeplesync.domain.reconciliation.normalize import normalize_name


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Spirit Island: Branch & Claw", "spirit island branch and claw"),
        ("Spirit Island: Branch and Claw", "spirit island branch and claw"),
        ("Carcassonne – Hunters and Gatherers", "carcassonne hunters and gatherers"),
        ("Pandemic—On the Brink", "pandemic on the brink"),
        ("7 Wonders-Duel", "7 wonders duel"),
        ("  Agricola:\tFarmers  of\nthe Moor ", "agricola farmers of the moor"),
        ("Café International", "cafe international"),
        ("Ticket to Ride®: Europe!", "ticket to ride europe"),
        ("", ""),
        ("!!!", ""),
    ],
)
def test_normalize_name(raw: str, expected: str) -> None:
    assert normalize_name(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "Spirit Island: Branch & Claw",
        "Ñandú & Co. — Édition spéciale",
        "  --- ",
        "R&D: Alpha&Omega",
        "Ticket to Ride®: Europe!",
    ],
)
def test_normalize_name_is_idempotent(raw: str) -> None:
    once = normalize_name(raw)

    assert normalize_name(once) == once


def test_normalize_name_keeps_words_apart_around_ampersand() -> None:
    assert normalize_name("Salt&Pepper") == "salt and pepper"
