"""
Tests for record normalization (set id derivation, numeric sort key, payloads).

To run: uv run pytest tests/test_normalize.py -v
"""

import json

import pytest

from pkmn_tracker.services.normalize import (
    card_number_sort_key,
    derive_set_id,
    normalize,
    normalize_card,
    normalize_set,
)


BASE_SET = {
    "id": "base1",
    "name": "Base Set",
    "series": "Base",
    "printedTotal": 102,
    "total": 102,
    "legalities": {"unlimited": "Legal"},
    "ptcgoCode": "BS",
    "releaseDate": "1999/01/09",
    "updatedAt": "2022/10/10 15:12:00",
    "images": {
        "symbol": "https://images.pokemontcg.io/base1/symbol.png",
        "logo": "https://images.pokemontcg.io/base1/logo.png",
    },
}


# =============================================================================
# card_number_sort_key
# =============================================================================


class TestCardNumberSortKey:
    @pytest.mark.parametrize("number,expected", [
        ("1", 1),
        ("042", 42),
        ("102", 102),
    ])
    def test_digits(self, number, expected):
        assert card_number_sort_key(number) == expected

    @pytest.mark.parametrize("number", [
        "SWSH001", "TG05", "12a", "SV-P", "", " 12", "1.5", "-3", "١٢", None, 12, 3.0,
    ])
    def test_non_numeric_has_no_key(self, number):
        assert card_number_sort_key(number) is None


# =============================================================================
# derive_set_id
# =============================================================================


class TestDeriveSetId:
    def test_prefix_of_id(self):
        assert derive_set_id({"id": "base1-4"}) == "base1"

    def test_prefix_stops_at_first_separator(self):
        assert derive_set_id({"id": "swsh12pt5gg-GG01"}) == "swsh12pt5gg"
        assert derive_set_id({"id": "a-b-c"}) == "a"

    def test_explicit_set_reference_wins(self):
        raw = {"id": "xy7-1", "set": {"id": "xy75", "name": "Ancient Origins"}}
        assert derive_set_id(raw) == "xy75"

    def test_explicit_set_id_field(self):
        assert derive_set_id({"id": "xy7-1", "setId": "xy75"}) == "xy75"

    def test_id_without_separator(self):
        assert derive_set_id({"id": "promo"}) == "promo"

    def test_no_id(self):
        assert derive_set_id({"name": "Pikachu"}) is None


# =============================================================================
# normalize_card / normalize_set
# =============================================================================


class TestNormalizeCard:
    def test_fields(self):
        raw = {
            "id": "base1-4",
            "name": "Charizard",
            "number": "4",
            "rarity": "Rare Holo",
            "images": {"small": "https://img/small.png", "large": "https://img/large.png"},
        }
        card = normalize_card(raw, synced_at="2026-01-01T00:00:00Z")

        assert card.id == "base1-4"
        assert card.name == "Charizard"
        assert card.set_id == "base1"
        assert card.card_number == "4"
        assert card.card_number_sort_key == 4
        assert card.image_url == "https://img/small.png"
        assert card.synced_at == "2026-01-01T00:00:00Z"

    def test_raw_payload_keeps_every_field(self):
        raw = {"id": "base1-4", "name": "Charizard", "number": "4", "hp": "120", "attacks": [{"name": "Fire Spin"}]}
        card = normalize_card(raw)
        assert card.payload() == raw
        assert json.loads(card.raw_payload)["attacks"][0]["name"] == "Fire Spin"

    def test_non_numeric_number(self):
        card = normalize_card({"id": "swshp-SWSH001", "name": "Grookey", "number": "SWSH001"})
        assert card.card_number == "SWSH001"
        assert card.card_number_sort_key is None
        assert card.set_id == "swshp"

    def test_malformed_fields_do_not_raise(self):
        card = normalize_card({"id": "x-1", "number": ["1"], "images": "nope", "name": 7})
        assert card.card_number is None
        assert card.card_number_sort_key is None
        assert card.image_url is None
        assert card.name == "x-1"

    def test_large_image_fallback(self):
        card = normalize_card({"id": "x-1", "name": "A", "images": {"large": "https://img/l.png"}})
        assert card.image_url == "https://img/l.png"

    def test_missing_id(self):
        assert normalize_card({"name": "Pikachu"}) is None
        assert normalize_card({"id": "", "name": "Pikachu"}) is None


class TestNormalizeSet:
    def test_fields(self):
        s = normalize_set(BASE_SET)
        assert s.id == "base1"
        assert s.name == "Base Set"
        assert s.series == "Base"
        assert s.printed_total == 102
        assert s.total == 102
        assert s.ptcgo_code == "BS"
        assert s.release_date == "1999/01/09"
        assert s.updated_at == "2022/10/10 15:12:00"
        assert s.symbol_url.endswith("symbol.png")
        assert s.logo_url.endswith("logo.png")
        assert s.legalities() == {"unlimited": "Legal"}

    def test_optional_fields_absent(self):
        s = normalize_set({"id": "sv1", "name": "Scarlet & Violet", "printedTotal": "n/a"})
        assert s.ptcgo_code is None
        assert s.printed_total is None
        assert s.symbol_url is None
        assert s.legalities() == {}

    def test_missing_id(self):
        assert normalize_set({"name": "Nameless"}) is None


class TestNormalize:
    def test_drops_entries_without_id(self):
        result = normalize(
            [{"id": "base1-1", "name": "Alakazam", "number": "1"}, {"name": "no id"}],
            [BASE_SET, {"name": "no id"}],
        )
        assert [c.id for c in result.cards] == ["base1-1"]
        assert [s.id for s in result.sets] == ["base1"]
        assert result.dropped == 2

    def test_numeric_key_invariant(self):
        numbers = ["1", "10", "SWSH001", "TG05", "007", "12a", ""]
        raw_cards = [{"id": f"s-{i}", "name": "c", "number": n} for i, n in enumerate(numbers)]
        result = normalize(raw_cards, [])
        for card in result.cards:
            if card.card_number_sort_key is not None:
                assert card.card_number.isascii() and card.card_number.isdigit()
                assert card.card_number_sort_key == int(card.card_number)

    def test_shared_synced_at(self):
        result = normalize(
            [{"id": "a-1", "name": "x"}, {"id": "a-2", "name": "y"}], [], synced_at="T"
        )
        assert {c.synced_at for c in result.cards} == {"T"}
