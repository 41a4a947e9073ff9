"""Tests for rote models."""

from datetime import date

import pytest
from pydantic import ValidationError

from rote.core.errors import ContractError, FormatError
from rote.core.models import COLUMNS, Card, Grade, SessionState


class TestGrade:
    """Tests for Grade."""

    def test_values(self):
        """Test grades are ordinal 1-4."""
        assert [g.value for g in Grade] == [1, 2, 3, 4]
        assert Grade.AGAIN < Grade.HARD < Grade.GOOD < Grade.EASY

    def test_coerce_int(self):
        """Test plain integers are accepted."""
        assert Grade.coerce(3) is Grade.GOOD
        assert Grade.coerce(Grade.EASY) is Grade.EASY

    @pytest.mark.parametrize("value", [0, 5, 2.5, "2", True, None])
    def test_coerce_rejects(self, value):
        """Test out-of-range or non-integer grades raise ContractError."""
        with pytest.raises(ContractError):
            Grade.coerce(value)


class TestCard:
    """Tests for Card."""

    def test_new_card(self):
        """Test a card without scheduling state."""
        card = Card(deck="geo", front="Capital of [France]?")

        assert card.id
        assert card.is_new
        assert card.is_due(date(2025, 1, 1))
        assert card.extra == []

    def test_ids_are_unique(self):
        """Test generated ids differ between cards."""
        assert Card(deck="a", front="q").id != Card(deck="a", front="q").id

    def test_is_due(self):
        """Test due on or before the day, not after."""
        card = Card(
            deck="geo",
            front="q",
            stability=3.0,
            difficulty=5.0,
            due=date(2025, 6, 4),
            last_review=date(2025, 6, 1),
        )
        assert not card.is_new
        assert not card.is_due(date(2025, 6, 3))
        assert card.is_due(date(2025, 6, 4))
        assert card.is_due(date(2025, 6, 5))

    def test_new_card_with_future_due_is_due(self):
        """Test a never-reviewed card is due even when its due column is later."""
        card = Card(deck="geo", front="q", due=date(2025, 7, 1))

        assert card.is_new
        assert card.is_due(date(2025, 6, 1))

    @pytest.mark.parametrize(
        "field,value",
        [
            ("stability", 0.0),
            ("stability", -1.0),
            ("stability", float("nan")),
            ("difficulty", 0.5),
            ("difficulty", 10.5),
            ("difficulty", float("inf")),
        ],
    )
    def test_rejects_out_of_range_state(self, field, value):
        """Test scheduling state is validated."""
        with pytest.raises(ValidationError):
            Card(deck="d", front="q", **{field: value})

    def test_with_schedule(self):
        """Test with_schedule returns a rescheduled copy."""
        card = Card(deck="d", front="q")
        updated = card.with_schedule(
            stability=3.173, difficulty=5.28, due=date(2025, 6, 4), last_review=date(2025, 6, 1)
        )

        assert updated.id == card.id
        assert updated.stability == 3.173
        assert not updated.is_new
        assert card.is_new


class TestSessionState:
    """Tests for SessionState."""

    def test_values(self):
        """Test state names as shown to clients."""
        assert SessionState.SELECTING_DECKS == "selecting-decks"
        assert SessionState.AWAITING_GRADE == "awaiting-grade"
        assert str(SessionState.FINISHED) == "finished"


class TestFormatError:
    """Tests for FormatError."""

    def test_message_includes_location(self):
        """Test source and row are prefixed onto the message."""
        err = FormatError("bad value", "decks/geo.csv", 4)
        assert str(err) == "decks/geo.csv:4: bad value"
        assert err.source == "decks/geo.csv"
        assert err.row == 4
        assert err.reason == "bad value"

    def test_message_without_source(self):
        """Test text sources get a placeholder label."""
        assert str(FormatError("missing header")) == "<text>: missing header"


def test_column_order():
    """Test the fixed column order."""
    assert COLUMNS == (
        "deck",
        "front",
        "back",
        "media",
        "id",
        "stability",
        "difficulty",
        "due",
        "last_review",
    )
