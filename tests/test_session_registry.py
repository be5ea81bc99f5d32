from __future__ import annotations

import pytest

from canvas_mcp.core.session import SessionRegistry

from .fakes import FakeClock, FakeTransport


def test_admit_rejects_when_at_capacity(registry: SessionRegistry) -> None:
    assert registry.admit("s1", FakeTransport()) is not None
    assert registry.admit("s2", FakeTransport()) is not None

    rejected = registry.admit("s3", FakeTransport())

    assert rejected is None
    assert len(registry) == 2
    assert [s.id for s in registry.all()] == ["s1", "s2"]
    assert registry.get("s3") is None


def test_admit_refuses_duplicate_id(registry: SessionRegistry) -> None:
    registry.admit("s1", FakeTransport())
    with pytest.raises(ValueError):
        registry.admit("s1", FakeTransport())


def test_new_session_starts_unauthenticated(registry: SessionRegistry, clock: FakeClock) -> None:
    session = registry.admit("s1", FakeTransport())
    assert session is not None
    assert session.authenticated is False
    assert session.client_info is None
    assert session.last_activity == clock.now


def test_remove_is_idempotent_and_closes_transport(registry: SessionRegistry) -> None:
    transport = FakeTransport()
    registry.admit("s1", transport)

    registry.remove("s1")
    registry.remove("s1")

    assert transport.close_calls == 1
    assert "s1" not in registry


def test_remove_swallows_close_errors(registry: SessionRegistry) -> None:
    class ExplodingTransport(FakeTransport):
        def close(self) -> None:
            raise RuntimeError("socket already gone")

    registry.admit("s1", ExplodingTransport())
    registry.remove("s1")
    assert len(registry) == 0


def test_all_returns_a_snapshot(registry: SessionRegistry) -> None:
    registry.admit("s1", FakeTransport())
    registry.admit("s2", FakeTransport())

    seen = []
    for session in registry.all():
        registry.remove("s2")
        seen.append(session.id)

    assert seen == ["s1", "s2"]
    assert [s.id for s in registry.all()] == ["s1"]


def test_last_activity_never_decreases(registry: SessionRegistry, clock: FakeClock) -> None:
    session = registry.admit("s1", FakeTransport())
    clock.advance(5)
    session.touch()
    assert session.last_activity == clock.now

    clock.now -= 3
    session.touch()
    assert session.last_activity == clock.now + 3


def test_mark_ready_only_flips_once(registry: SessionRegistry) -> None:
    session = registry.admit("s1", FakeTransport())
    assert session.mark_ready() is True
    assert session.mark_ready() is False
    assert session.authenticated is True


def test_clear_closes_everything() -> None:
    registry = SessionRegistry(5, clock=FakeClock())
    transports = [FakeTransport() for _ in range(3)]
    for index, transport in enumerate(transports):
        registry.admit(f"s{index}", transport)

    registry.clear()

    assert len(registry) == 0
    assert all(t.closed for t in transports)
