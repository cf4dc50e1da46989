from __future__ import annotations

from meeplesync.domain.model import EntityKind, Game
from meeplesync.domain.reconciliation import MatchType, match_entity


def test_exact_id_wins_over_names() -> None:
    by_name = Game(name="Root")
    by_id = Game(name="Something else entirely", external_id=237182)

    result = match_entity("Root", [by_name, by_id], external_id=237182)

    assert result.entity is by_id
    assert result.match_type is MatchType.EXACT_ID
    assert result.confident


def test_exact_name_after_normalization() -> None:
    known = Game(name="Spirit Island: Branch and Claw", kind=EntityKind.EXPANSION)

    result = match_entity(
        "Spirit Island: Branch & Claw", [known], family_hint="Spirit Island"
    )

    assert result.entity is known
    assert result.match_type is MatchType.EXACT_NAME


def test_family_prefix_resolves_subtitle_only_names() -> None:
    known = Game(name="Spirit Island: Branch & Claw")

    result = match_entity("Branch & Claw", [known], family_hint="Spirit Island")

    assert result.entity is known
    assert result.match_type is MatchType.FAMILY_PREFIX


def test_family_suffix_allows_arbitrary_separators() -> None:
    known = Game(name="Spirit Island – The Expansion: Jagged Earth")

    result = match_entity("Jagged Earth", [known], family_hint="Spirit Island")

    assert result.entity is known
    assert result.match_type is MatchType.FAMILY_SUFFIX


def test_fuzzy_contains_requires_substantial_overlap() -> None:
    known = Game(name="Terraforming Mars: Prelude")

    close = match_entity("Terraforming Mars Prelude Promo", [known])
    distant = match_entity("Mars", [known])

    assert close.entity is known
    assert close.match_type is MatchType.FUZZY_CONTAINS
    assert not close.confident
    assert distant.entity is None
    assert distant.match_type is MatchType.NONE


def test_single_character_names_do_not_fuzzy_match() -> None:
    known = Game(name="Go")

    result = match_entity("G", [known])

    assert result.entity is None


def test_overlap_threshold_is_configurable() -> None:
    known = Game(name="Everdell Pearlbrook")

    strict = match_entity("Everdell", [known])
    loose = match_entity("Everdell", [known], contains_overlap=0.3)

    assert strict.entity is None
    assert loose.entity is known


def test_no_match_and_empty_names() -> None:
    known = [Game(name="Azul"), Game(name="Wingspan")]

    assert match_entity("Brass: Birmingham", known).match_type is MatchType.NONE
    assert match_entity("???", known).match_type is MatchType.NONE
    assert match_entity("Azul", []).entity is None


def test_matching_does_not_mutate_inputs() -> None:
    known = [Game(name="Azul"), Game(name="Wingspan", external_id=266192)]
    before = [(game.name, game.external_id) for game in known]

    match_entity("wingspan", known, family_hint="Wingspan", external_id=1)

    assert [(game.name, game.external_id) for game in known] == before
