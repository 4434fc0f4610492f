"""
Tests for the Session Store component.
"""

from comlink.session_store import SessionAction, SessionMutation, SessionStore


def test_get_creates_empty_set(sessions):
    assert sessions.get("alice") == set()
    assert sessions.users() == ["alice"]


def test_get_returns_snapshot(sessions):
    """Test that mutating the returned set does not touch the store."""
    sessions.add("alice", "comlink.giphy")

    snapshot = sessions.get("alice")
    snapshot.add("comlink.weather")

    assert sessions.get("alice") == {"comlink.giphy"}


def test_add_and_remove(sessions):
    sessions.add("alice", "comlink.giphy")
    sessions.add("alice", "comlink.giphy")

    assert sessions.get("alice") == {"comlink.giphy"}
    assert sessions.remove("alice", "comlink.giphy") is True
    assert sessions.remove("alice", "comlink.giphy") is False
    assert sessions.get("alice") == set()


def test_users_are_isolated(sessions):
    sessions.add("alice", "comlink.giphy")

    assert sessions.get("bob") == set()


def test_apply_mutations():
    store = SessionStore()

    store.apply("alice", SessionMutation(action=SessionAction.ADD, tool_id="comlink.maps"))
    assert store.get("alice") == {"comlink.maps"}

    store.apply("alice", SessionMutation(action=SessionAction.REMOVE, tool_id="comlink.maps"))
    assert store.get("alice") == set()
