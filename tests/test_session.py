"""Tests for drill sessions."""

import tempfile
from datetime import date
from pathlib import Path
from unittest.mock import patch

import pytest

from rote.core.errors import ContractError, PersistenceError
from rote.core.models import Grade, SessionState
from rote.core.scheduler import Scheduler
from rote.core.session import ReviewSession
from rote.core.storage import CardStore

HEADER = "deck,front,back,media,id,stability,difficulty,due,last_review\n"
TODAY = date(2025, 6, 10)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def deck_dir(temp_dir):
    """Create deck files where decks are spread across files."""
    (temp_dir / "first.csv").write_text(
        HEADER
        + "bio,Cells are the unit of [life],,,b1,4.0000,5.0000,2025-06-08,2025-06-04\n"
        + "chem,H2O is [water],,,c1,,,,\n"
        + "geo,Capital of France?,Paris,,g1,,,,\n",
        encoding="utf-8",
    )
    (temp_dir / "second.csv").write_text(
        HEADER
        + "chem,NaCl is [salt],,,c2,3.0000,5.0000,2025-06-01,2025-05-29\n"
        + "bio,DNA is a [double helix],,,b2,,,,\n"
        + "geo,Capital of Spain?,Madrid,,g2,5.0000,5.0000,2025-06-09,2025-06-04\n"
        + "bio,Not due yet,,,b3,20.0000,5.0000,2025-07-01,2025-06-09\n",
        encoding="utf-8",
    )
    return temp_dir


@pytest.fixture
def store(deck_dir):
    """Create a CardStore over deck_dir."""
    return CardStore.open([deck_dir], retry_delay=0)


@pytest.fixture
def session(store):
    """Create a session fixed to TODAY without fuzz."""
    return ReviewSession(store, Scheduler(), today=TODAY)


class TestDeckSelection:
    """Tests for counting and selecting decks."""

    def test_due_counts(self, session):
        """Test due and total counts per deck, sorted by name."""
        counts = session.get_due_counts()

        assert list(counts) == ["bio", "chem", "geo"]
        assert (counts["bio"].due, counts["bio"].total) == (2, 3)
        assert (counts["chem"].due, counts["chem"].total) == (2, 2)
        assert (counts["geo"].due, counts["geo"].total) == (2, 2)

    def test_due_counts_filtered(self, session):
        """Test counts can be restricted to some decks."""
        assert list(session.get_due_counts(["geo"])) == ["geo"]

    def test_filter_two_of_three_decks(self, session):
        """Test selecting two decks queues exactly their due cards, from every file."""
        count = session.select_decks(["bio", "chem"])

        assert count == 4
        queued = {session.store.get(card_id).deck for card_id in session._queue}
        assert queued == {"bio", "chem"}
        assert set(session._queue) == {"b1", "b2", "c1", "c2"}
        assert session.state == SessionState.PRESENTING

    def test_all_decks(self, session):
        """Test no filter means every deck."""
        assert session.select_decks() == 6
        assert "b3" not in session._queue

    def test_queue_order(self, session):
        """Test new cards first in load order, then by ascending due date."""
        session.select_decks()
        assert session._queue == ["c1", "g1", "b2", "c2", "b1", "g2"]

    def test_limits(self, session):
        """Test the overall and new-card limits."""
        assert session.select_decks(limit=2) == 2
        other = ReviewSession(session.store, today=TODAY)
        other.select_decks(new_limit=1)
        assert other._queue == ["c1", "c2", "b1", "g2"]

    def test_unknown_deck(self, session):
        """Test selecting a deck that does not exist."""
        with pytest.raises(ContractError, match="nope"):
            session.select_decks(["bio", "nope"])
        assert session.state == SessionState.SELECTING_DECKS

    def test_select_twice(self, session):
        """Test decks can only be selected once per session."""
        session.select_decks(["geo"])
        with pytest.raises(ContractError):
            session.select_decks(["bio"])

    def test_new_card_with_due_date_is_queued(self, temp_dir):
        """Test a never-reviewed card counts as due even with a later due column."""
        (temp_dir / "hist.csv").write_text(
            HEADER + "hist,Year of the moon landing?,1969,,h1,,,2025-09-01,\n",
            encoding="utf-8",
        )
        session = ReviewSession(CardStore.open([temp_dir]), today=TODAY)

        assert session.get_due_counts()["hist"].due == 1
        assert session.select_decks(["hist"]) == 1
        assert session.next_card().card_id == "h1"

    def test_nothing_due(self, store):
        """Test an empty queue finishes the session at once."""
        session = ReviewSession(store, today=TODAY)
        session.select_decks(["bio"], limit=0)

        assert session.state == SessionState.FINISHED
        assert session.next_card() is None


class TestReviewProtocol:
    """Tests for next_card and submit_grade."""

    def test_next_card_before_selection(self, session):
        """Test a card cannot be requested before decks are selected."""
        with pytest.raises(ContractError):
            session.next_card()

    def test_next_card_view(self, session):
        """Test the presented card is rendered for display."""
        session.select_decks(["chem"])
        view = session.next_card()

        assert view.card_id == "c1"
        assert view.deck == "chem"
        assert view.prompt == "H2O is ___"
        assert view.answer == "H2O is water"
        assert (view.position, view.total) == (1, 2)
        assert session.state == SessionState.AWAITING_GRADE

    def test_next_card_repeats_until_graded(self, session):
        """Test asking again returns the card still in flight."""
        session.select_decks(["chem"])
        assert session.next_card().card_id == session.next_card().card_id

    def test_full_session(self, session, deck_dir):
        """Test grading every card updates the files and finishes."""
        session.select_decks(["geo"])

        view = session.next_card()
        result = session.submit_grade(view.card_id, Grade.GOOD)
        assert result.card.last_review == TODAY
        assert result.due > TODAY
        assert session.state == SessionState.PRESENTING

        view = session.next_card()
        session.submit_grade(view.card_id, 1)
        assert session.state == SessionState.FINISHED
        assert session.next_card() is None

        summary = session.summary()
        assert (summary.total, summary.reviewed, summary.remaining) == (2, 2, 0)
        assert (summary.again, summary.good) == (1, 1)

        reloaded = CardStore.open([deck_dir])
        assert reloaded.get("g1").last_review == TODAY
        assert reloaded.get("g2").last_review == TODAY

    def test_each_grade_is_written_immediately(self, session, deck_dir):
        """Test a grade is on disk before the next card is shown."""
        session.select_decks(["chem"])
        view = session.next_card()
        session.submit_grade(view.card_id, Grade.EASY)

        text = (deck_dir / "first.csv").read_text(encoding="utf-8")
        assert TODAY.isoformat() in text
        assert session.remaining == 1

    def test_submit_without_card(self, session):
        """Test a grade needs a card in flight."""
        session.select_decks(["geo"])
        with pytest.raises(ContractError):
            session.submit_grade("g1", Grade.GOOD)

    def test_submit_wrong_card(self, session):
        """Test a grade for another card is refused."""
        session.select_decks(["geo"])
        session.next_card()
        with pytest.raises(ContractError):
            session.submit_grade("g2", Grade.GOOD)
        assert session.state == SessionState.AWAITING_GRADE

    @pytest.mark.parametrize("grade", [0, 5, "3"])
    def test_submit_invalid_grade(self, session, grade):
        """Test invalid grades leave the card in flight."""
        session.select_decks(["geo"])
        view = session.next_card()
        with pytest.raises(ContractError):
            session.submit_grade(view.card_id, grade)
        assert session.state == SessionState.AWAITING_GRADE
        assert session.remaining == 2

    def test_persistence_failure_keeps_card_in_flight(self, session, store):
        """Test a failed write does not advance the queue and can be retried."""
        session.select_decks(["geo"])
        view = session.next_card()
        original = store.get(view.card_id)

        with patch("rote.core.storage.atomic_write_text", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceError):
                session.submit_grade(view.card_id, Grade.GOOD)

        assert session.state == SessionState.AWAITING_GRADE
        assert session.remaining == 2
        assert session.results == []
        assert store.get(view.card_id) is original

        session.submit_grade(view.card_id, Grade.GOOD)
        assert session.remaining == 1

    def test_current_card(self, session):
        """Test current_card follows the queue."""
        assert session.current_card is None
        session.select_decks(["geo"])
        assert session.current_card.id == "g1"

    def test_card_graded_in_another_session(self, store):
        """Test a card graded by a second session after it was presented is refused."""
        first = ReviewSession(store, today=TODAY)
        second = ReviewSession(store, today=TODAY)
        first.select_decks(["geo"])
        second.select_decks(["geo"])
        assert first.next_card().card_id == "g1"
        assert second.next_card().card_id == "g1"

        first.submit_grade("g1", Grade.GOOD)
        graded = store.get("g1")

        with pytest.raises(ContractError, match="no longer due"):
            second.submit_grade("g1", Grade.AGAIN)
        assert store.get("g1") is graded
        assert second.state == SessionState.AWAITING_GRADE

        assert second.next_card().card_id == "g2"
        second.submit_grade("g2", Grade.GOOD)
        summary = second.summary()
        assert (summary.reviewed, summary.skipped, summary.again) == (1, 1, 0)

    def test_queued_card_graded_elsewhere_is_skipped(self, store):
        """Test next_card passes over queued cards that are no longer due."""
        first = ReviewSession(store, today=TODAY)
        second = ReviewSession(store, today=TODAY)
        first.select_decks(["geo"])
        second.select_decks(["geo"])

        for _ in range(2):
            view = first.next_card()
            first.submit_grade(view.card_id, Grade.GOOD)

        assert second.next_card() is None
        assert second.state == SessionState.FINISHED
        assert second.skipped == ["g1", "g2"]
        assert second.summary().reviewed == 0
