from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from src.auth.credentials import AuthorizedCredential, LoadStatus
from src.auth.store import CredentialStore

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _store() -> CredentialStore:
    return CredentialStore(clock=lambda: NOW)


def _credential(expires_in: timedelta | None, refresh_token: str | None = None, token: str = "access") -> AuthorizedCredential:
    return AuthorizedCredential(
        access_token=token,
        expires_at=NOW + expires_in if expires_in is not None else None,
        refresh_token=refresh_token,
    )


def test_credential_inside_guard_band_needs_refresh() -> None:
    store = _store()
    store.save("alice", _credential(timedelta(seconds=60) - timedelta(milliseconds=1)))

    assert store.load("alice").status is LoadStatus.NEEDS_REFRESH


def test_credential_outside_guard_band_is_valid() -> None:
    store = _store()
    credential = _credential(timedelta(seconds=61))
    store.save("alice", credential)

    result = store.load("alice")

    assert result.status is LoadStatus.VALID
    assert result.credential == credential


def test_exactly_sixty_seconds_is_not_valid() -> None:
    store = _store()
    store.save("alice", _credential(timedelta(seconds=60)))

    assert store.load("alice").status is LoadStatus.NEEDS_REFRESH


def test_credential_without_expiry_needs_refresh() -> None:
    store = _store()
    store.save("alice", _credential(None))

    assert store.load("alice").status is LoadStatus.NEEDS_REFRESH


def test_unknown_principal_is_absent() -> None:
    assert _store().load("nobody").status is LoadStatus.ABSENT


def test_remove_clears_refresh_token_too() -> None:
    store = _store()
    store.save("alice", _credential(timedelta(hours=1), refresh_token="refresh"))

    store.remove("alice")

    assert store.load("alice").status is LoadStatus.ABSENT
    assert store.has_refresh_capability("alice") is False


def test_remove_is_idempotent() -> None:
    store = _store()
    store.remove("ghost")
    store.remove("ghost")

    assert store.load("ghost").status is LoadStatus.ABSENT


def test_discarded_access_with_refresh_token_needs_refresh() -> None:
    store = _store()
    store.save("alice", _credential(timedelta(hours=1), refresh_token="refresh"))

    store.discard_access("alice")

    assert store.load("alice").status is LoadStatus.NEEDS_REFRESH
    assert store.has_refresh_capability("alice") is True


def test_discarded_access_without_refresh_token_is_absent() -> None:
    store = _store()
    store.save("alice", _credential(timedelta(hours=1)))

    store.discard_access("alice")

    assert store.load("alice").status is LoadStatus.ABSENT


def test_refresh_token_survives_expiry_and_later_saves() -> None:
    store = _store()
    store.save("alice", _credential(timedelta(seconds=-5), refresh_token="refresh"))

    assert store.load("alice").status is LoadStatus.NEEDS_REFRESH
    assert store.has_refresh_capability("alice") is True

    store.save("alice", _credential(timedelta(hours=1), token="renewed"))

    assert store.refresh_token("alice") == "refresh"
    assert store.load("alice").credential.access_token == "renewed"


def test_save_overwrites_previous_credential() -> None:
    store = _store()
    store.save("alice", _credential(timedelta(hours=1), token="first"))
    store.save("alice", _credential(timedelta(hours=1), token="second"))

    assert store.load("alice").credential.access_token == "second"


def test_principals_are_isolated_under_concurrent_access() -> None:
    store = _store()
    principals = [f"user-{index}" for index in range(50)]

    def cycle(principal: str) -> LoadStatus:
        for round_ in range(20):
            store.save(principal, _credential(timedelta(hours=1), token=f"{principal}-{round_}"))
            assert store.load(principal).is_valid
        return store.load(principal).status

    with ThreadPoolExecutor(max_workers=8) as pool:
        statuses = list(pool.map(cycle, principals))

    assert statuses == [LoadStatus.VALID] * len(principals)
    for principal in principals:
        assert store.load(principal).credential.access_token == f"{principal}-19"


def test_naive_expiry_is_treated_as_utc() -> None:
    store = _store()
    store.save("alice", AuthorizedCredential("token", datetime(2030, 1, 1)))

    result = store.load("alice")

    assert result.status is LoadStatus.VALID
    assert result.credential is not None
    assert result.credential.expires_at == datetime(2030, 1, 1, tzinfo=timezone.utc)


def test_replace_if_refresh_token_requires_retained_token() -> None:
    store = _store()
    store.save("alice", _credential(timedelta(minutes=-5), refresh_token="refresh", token="old"))

    assert store.replace_if_refresh_token("alice", "stale", _credential(timedelta(hours=1), token="other")) is False
    assert store.peek("alice").access_token == "old"

    assert store.replace_if_refresh_token("alice", "refresh", _credential(timedelta(hours=1), token="new")) is True
    assert store.load("alice").credential.access_token == "new"
    assert store.refresh_token("alice") == "refresh"

    store.remove("alice")
    assert store.replace_if_refresh_token("alice", "refresh", _credential(timedelta(hours=1))) is False
    assert store.load("alice").status is LoadStatus.ABSENT
