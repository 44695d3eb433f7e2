"""Tests for authflow.state -- issuing and verifying state / nonce."""

from __future__ import annotations

from authflow.models import GeneratedValue, StaticValue
from authflow.state import StateManager, nonce_key, state_key
from authflow.storage import MemoryStorage


class TestKeys:
    def test_keys_scoped_by_flow_name(self) -> None:
        assert state_key("google") == "google_state"
        assert nonce_key("google") == "google_nonce"


class TestIssue:
    def test_static_value_stored_verbatim(self) -> None:
        storage = MemoryStorage()
        value = StateManager(storage).issue_state("acme", StaticValue("fixed"))
        assert value == "fixed"
        assert storage.get("acme_state") == "fixed"

    def test_generated_value_invoked_once(self) -> None:
        calls: list[int] = []

        def factory() -> str:
            calls.append(1)
            return "generated"

        storage = MemoryStorage()
        StateManager(storage).issue_nonce("acme", GeneratedValue(factory))
        assert storage.get("acme_nonce") == "generated"
        assert len(calls) == 1

    def test_none_issues_nothing(self) -> None:
        storage = MemoryStorage()
        assert StateManager(storage).issue_state("acme", None) is None
        assert len(storage) == 0

    def test_flows_do_not_interfere(self) -> None:
        storage = MemoryStorage()
        states = StateManager(storage)
        states.issue_state("google", StaticValue("g"))
        states.issue_state("github", StaticValue("h"))
        assert states.stored_state("google") == "g"
        assert states.stored_state("github") == "h"

    def test_reissue_overwrites(self) -> None:
        storage = MemoryStorage()
        states = StateManager(storage)
        states.issue_state("acme", StaticValue("first"))
        states.issue_state("acme", StaticValue("second"))
        assert states.stored_state("acme") == "second"


class TestVerify:
    def test_matching_state(self) -> None:
        states = StateManager(MemoryStorage({"acme_state": "s1"}))
        assert states.verify_state("acme", "s1") is True

    def test_mismatching_state(self) -> None:
        states = StateManager(MemoryStorage({"acme_state": "s1"}))
        assert states.verify_state("acme", "other") is False

    def test_absent_state_passes(self) -> None:
        states = StateManager(MemoryStorage({"acme_state": "s1"}))
        assert states.verify_state("acme", None) is True
        assert states.verify_state("acme", "") is True

    def test_unexpected_state_fails(self) -> None:
        assert StateManager(MemoryStorage()).verify_state("acme", "s1") is False

    def test_nonce(self) -> None:
        states = StateManager(MemoryStorage({"acme_nonce": "n1"}))
        assert states.verify_nonce("acme", "n1") is True
        assert states.verify_nonce("acme", "n2") is False
