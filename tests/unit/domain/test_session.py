"""Unit tests for Session state.

The first-turn condition (turn_count == 0) drives full-prompt mode, so it
must hold exactly once per session.
"""

from datetime import UTC, datetime

from chainlens.domain.domain_type import ChatRole
from chainlens.domain.domain_value import ANONYMOUS_USER, Session, SessionId


def test_start_generates_id_and_anonymous_user():
    session = Session.start()

    assert session.id.root.startswith("session_")
    assert session.user_id == ANONYMOUS_USER
    assert session.is_first_turn


def test_start_keeps_caller_supplied_id():
    session = Session.start(session_id="my-session", user_id="u1")

    assert session.id == SessionId("my-session")
    assert session.user_id == "u1"


def test_first_turn_holds_exactly_once():
    """
    Demonstrates: Regression guard for the turn counter.

    After the first exchange the counter is 2; every later exchange keeps it
    even and non-zero, so first-turn mode can never recur.
    """
    session = Session.start()
    seen_first = [session.is_first_turn]

    for n in range(4):
        session = session.record_exchange(f"q{n}", f"a{n}")
        seen_first.append(session.is_first_turn)

    assert seen_first == [True, False, False, False, False]
    assert session.turn_count == 8


def test_record_exchange_returns_new_instance():
    session = Session.start()

    updated = session.record_exchange("hi", "hello")

    assert updated is not session
    assert session.turn_count == 0
    assert session.history == ()
    assert [entry.role for entry in updated.history] == [ChatRole.USER, ChatRole.ASSISTANT]


def test_history_is_bounded_to_most_recent_messages():
    session = Session.start()
    for n in range(6):
        session = session.record_exchange(f"q{n}", f"a{n}", history_limit=4)

    assert [entry.content for entry in session.history] == ["q4", "a4", "q5", "a5"]


def test_record_exchange_updates_last_activity():
    stamp = datetime(2025, 1, 1, tzinfo=UTC)

    session = Session.start().record_exchange("hi", "hello", now=stamp)

    assert session.last_activity == stamp
    assert session.history[0].timestamp == stamp
