# tests/test_use_cases.py
import threading
from dataclasses import replace
from datetime import timedelta

import pytest

from pkg_tokens.adapters.memory.store import InMemoryTokenStore
from pkg_tokens.domain.constants import TokenStatus
from pkg_tokens.domain.entities import CallerIdentity
from pkg_tokens.domain.exceptions import (
    AlreadyExpiredError,
    AlreadyRevokedError,
    ForbiddenError,
    InvalidClaimsError,
    InvalidDurationError,
    NotFoundError,
    SignatureInvalidError,
    TokenExpiredError,
    TokenRevokedError,
)
from pkg_tokens.domain.value_objects import TokenListFilter
from pkg_tokens.integrations.common.lifecycle_factory import create_token_lifecycle

CLAIMS = {"sub": "user123", "role": "user", "email": "user@example.com"}


def issue(lifecycle, owner="user123", name="example-token", minutes=60, claims=None):
    claims = dict(CLAIMS if claims is None else claims)
    if owner != "user123" and claims.get("sub") == "user123":
        claims["sub"] = owner
    return lifecycle.generate(owner, name, claims, minutes)


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------


def test_generate_returns_decodable_token(lifecycle, codec, store, clock):
    issued = issue(lifecycle)

    payload = codec.decode(issued.token).payload
    for key, value in CLAIMS.items():
        assert payload[key] == value
    assert payload["jti"] == issued.token_id
    assert payload["iat"] == int(clock.now().timestamp())
    assert payload["exp"] == int(issued.expires_at.timestamp())

    assert issued.issued_at == clock.now()
    assert issued.expires_at == clock.now() + timedelta(minutes=60)

    record = store.get(issued.token_id)
    assert record.status is TokenStatus.ACTIVE
    assert record.owner_id == "user123"
    assert record.name == "example-token"
    assert record.claims == CLAIMS
    assert record.key_id == "k1"


def test_generate_then_authorize_succeeds(lifecycle):
    issued = issue(lifecycle)
    caller = lifecycle.authorize(issued.token)
    assert caller == CallerIdentity(owner_id="user123", token_id=issued.token_id)


def test_generate_allocates_unique_ids(lifecycle):
    ids = {issue(lifecycle).token_id for _ in range(50)}
    assert len(ids) == 50


def test_generate_truncates_to_whole_seconds(lifecycle, clock):
    clock.current = clock.current.replace(microsecond=654321)
    issued = issue(lifecycle)
    assert issued.issued_at.microsecond == 0
    assert lifecycle.authorize(issued.token).token_id == issued.token_id


@pytest.mark.parametrize("minutes", [0, -1, 60 * 24 * 365 + 1, True])
def test_generate_rejects_bad_duration(lifecycle, store, minutes):
    with pytest.raises(InvalidDurationError):
        issue(lifecycle, minutes=minutes)
    assert store.list_by_owner("user123") == []


def test_generate_rejects_reserved_and_foreign_claims(lifecycle):
    with pytest.raises(InvalidClaimsError):
        issue(lifecycle, claims={"jti": "mine"})
    with pytest.raises(InvalidClaimsError):
        issue(lifecycle, claims={"sub": "somebody-else"})


def test_generate_applies_default_audience(lifecycle, codec, store):
    issued = issue(lifecycle)

    assert codec.decode(issued.token).payload["aud"] == ["tim-audience"]
    assert store.get(issued.token_id).audience == ("tim-audience",)


def test_generate_without_default_audience_omits_aud(settings, store, clock, codec):
    lifecycle = create_token_lifecycle(replace(settings, default_audience=None), store=store, clock=clock)
    issued = issue(lifecycle)

    assert "aud" not in codec.decode(issued.token).payload
    assert store.get(issued.token_id).audience == ()


def test_generate_restricts_audience_to_allowed(settings, store, clock):
    restricted = replace(settings, default_audience="web", allowed_audiences=("web", "cli"))
    lifecycle = create_token_lifecycle(restricted, store=store, clock=clock)

    lifecycle.generate("user123", "n", CLAIMS, 5, "cli")
    with pytest.raises(InvalidClaimsError):
        lifecycle.generate("user123", "n", CLAIMS, 5, ["web", "admin"])
    with pytest.raises(InvalidClaimsError):
        lifecycle.generate("user123", "n", CLAIMS, 5, [""])

    assert [r.audience for r in store.list_by_owner("user123")] == [("cli",)]


def test_generate_past_max_datetime_is_a_duration_error(settings, store, clock):
    lifecycle = create_token_lifecycle(
        replace(settings, max_expiration_minutes=10 ** 10), store=store, clock=clock,
    )

    with pytest.raises(InvalidDurationError):
        lifecycle.generate("user123", "n", CLAIMS, 10 ** 10)
    assert store.list_by_owner("user123") == []


def test_generate_rejects_blank_owner_and_name(lifecycle):
    with pytest.raises(InvalidClaimsError):
        lifecycle.generate("  ", "name", {}, 10)
    with pytest.raises(ValueError):
        lifecycle.generate("user123", "", {}, 10)


# ---------------------------------------------------------------------------
# authorize / validate
# ---------------------------------------------------------------------------


def test_authorize_rejects_expired_even_if_stored_active(lifecycle, store, clock):
    issued = issue(lifecycle, minutes=10)
    clock.advance(minutes=10)

    assert store.get(issued.token_id).status is TokenStatus.ACTIVE
    with pytest.raises(TokenExpiredError):
        lifecycle.authorize(issued.token)


def test_authorize_rejects_revoked(lifecycle):
    issued = issue(lifecycle)
    caller = lifecycle.authorize(issued.token)
    lifecycle.revoke(issued.token_id, caller)

    with pytest.raises(TokenRevokedError):
        lifecycle.authorize(issued.token)


def test_authorize_rejects_unknown_record(settings, clock, lifecycle):
    issued = issue(lifecycle)
    empty = create_token_lifecycle(settings, store=InMemoryTokenStore(), clock=clock)

    with pytest.raises(NotFoundError):
        empty.authorize(issued.token)


def test_authorize_rejects_token_not_matching_record(lifecycle, codec, clock):
    issued = issue(lifecycle)
    forged = codec.encode("intruder", {}, clock.now(), clock.now() + timedelta(hours=1), issued.token_id)

    with pytest.raises(SignatureInvalidError):
        lifecycle.authorize(forged)


def test_validate_reports_outcomes(lifecycle, clock):
    issued = issue(lifecycle, minutes=10)

    ok = lifecycle.validate(issued.token)
    assert ok.valid is True
    assert ok.status == "active"
    assert ok.owner_id == "user123"
    assert ok.token_id == issued.token_id
    assert ok.claims == CLAIMS
    assert ok.expires_at == issued.expires_at

    bad = lifecycle.validate("garbage")
    assert (bad.valid, bad.status, bad.reason) == (False, "invalid", "malformed")

    clock.advance(minutes=11)
    expired = lifecycle.validate(issued.token)
    assert (expired.valid, expired.status) == (False, "expired")


def test_validate_checks_requested_audience(lifecycle):
    issued = lifecycle.generate("user123", "n", CLAIMS, 60, ["web", "cli"])

    ok = lifecycle.validate(issued.token, "cli")
    assert ok.valid is True
    assert ok.audience == ["web", "cli"]

    mismatch = lifecycle.validate(issued.token, "admin")
    assert (mismatch.valid, mismatch.status, mismatch.reason) == (False, "invalid", "audience_mismatch")
    assert mismatch.claims is None


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


def test_list_is_owner_scoped(lifecycle):
    mine = issue(lifecycle, name="mine")
    issue(lifecycle, owner="other", name="theirs")

    caller = lifecycle.authorize(mine.token)
    views = lifecycle.list_tokens(caller)

    assert [v.token_id for v in views] == [mine.token_id]
    assert views[0].jwt_name == "mine"
    assert views[0].status is TokenStatus.ACTIVE


def test_list_reflects_effective_status(lifecycle, clock):
    short = issue(lifecycle, name="short", minutes=5)
    long_lived = issue(lifecycle, name="long", minutes=120)
    revoked = issue(lifecycle, name="revoked", minutes=120)
    caller = lifecycle.authorize(long_lived.token)
    lifecycle.revoke(revoked.token_id, caller)

    clock.advance(minutes=6)
    statuses = {v.jwt_name: v.status for v in lifecycle.list_tokens(caller)}

    assert statuses == {
        "short": TokenStatus.EXPIRED,
        "long": TokenStatus.ACTIVE,
        "revoked": TokenStatus.REVOKED,
    }
    assert short.token_id in {v.token_id for v in lifecycle.list_tokens(caller)}


def test_list_filters_and_pages(lifecycle, clock):
    first = issue(lifecycle, name="a")
    clock.advance(seconds=1)
    issue(lifecycle, name="b")
    clock.advance(seconds=1)
    third = issue(lifecycle, name="a")
    caller = lifecycle.authorize(first.token)
    lifecycle.revoke(first.token_id, caller)

    named = lifecycle.list_tokens(caller, TokenListFilter(jwt_name="a"))
    assert [v.token_id for v in named] == [third.token_id, first.token_id]

    revoked = lifecycle.list_tokens(caller, TokenListFilter(status=TokenStatus.REVOKED))
    assert [v.token_id for v in revoked] == [first.token_id]

    page = lifecycle.list_tokens(caller, TokenListFilter(limit=1, offset=1))
    assert [v.jwt_name for v in page] == ["b"]


def test_list_filters_by_date_range(lifecycle, clock):
    early = issue(lifecycle, minutes=10)
    clock.advance(minutes=30)
    late = issue(lifecycle, minutes=120)
    caller = lifecycle.authorize(late.token)

    def ids(**bounds):
        return [v.token_id for v in lifecycle.list_tokens(caller, TokenListFilter(**bounds))]

    assert ids(issued_after=late.issued_at) == [late.token_id]
    assert ids(issued_before=early.issued_at) == [early.token_id]
    assert ids(expires_before=clock.now() + timedelta(hours=1)) == [early.token_id]
    assert ids(expires_after=early.expires_at + timedelta(seconds=1)) == [late.token_id]
    assert ids(issued_after=early.issued_at, expires_before=late.expires_at) == [late.token_id, early.token_id]


# ---------------------------------------------------------------------------
# extend
# ---------------------------------------------------------------------------


def test_extend_moves_expiry_and_resigns(lifecycle, codec, clock):
    issued = issue(lifecycle, minutes=60)
    caller = lifecycle.authorize(issued.token)

    extended = lifecycle.extend(issued.token_id, 30, caller)

    assert extended.token_id == issued.token_id
    assert extended.expires_at == clock.now() + timedelta(minutes=90)

    payload = codec.decode(extended.token).payload
    assert payload["jti"] == issued.token_id
    assert payload["exp"] == int(extended.expires_at.timestamp())
    assert payload["role"] == "user"

    # the originally issued token benefits from the extension
    clock.advance(minutes=75)
    assert lifecycle.authorize(issued.token).token_id == issued.token_id


def test_extend_never_decreases_expiry(lifecycle, clock):
    issued = issue(lifecycle, minutes=10)
    caller = lifecycle.authorize(issued.token)

    previous = issued.expires_at
    for minutes in (1, 5, 1, 30, 2):
        clock.advance(minutes=1)
        current = lifecycle.extend(issued.token_id, minutes, caller).expires_at
        assert current >= previous
        previous = current


def test_extend_with_another_token_of_same_owner(lifecycle):
    target = issue(lifecycle, name="target")
    other = issue(lifecycle, name="other")
    caller = lifecycle.authorize(other.token)

    extended = lifecycle.extend(target.token_id, 15, caller)
    assert extended.expires_at == target.expires_at + timedelta(minutes=15)


def test_extend_forbidden_for_other_owner(lifecycle):
    target = issue(lifecycle)
    intruder = issue(lifecycle, owner="intruder")
    caller = lifecycle.authorize(intruder.token)

    with pytest.raises(ForbiddenError):
        lifecycle.extend(target.token_id, 15, caller)


def test_extend_rejects_revoked_and_expired(lifecycle, clock):
    revoked = issue(lifecycle, minutes=60)
    expiring = issue(lifecycle, minutes=5)
    caller = lifecycle.authorize(revoked.token)
    lifecycle.revoke(revoked.token_id, caller)

    with pytest.raises(AlreadyRevokedError):
        lifecycle.extend(revoked.token_id, 10, caller)

    clock.advance(minutes=5)
    with pytest.raises(AlreadyExpiredError):
        lifecycle.extend(expiring.token_id, 10, caller)


def test_extend_validates_duration_and_target(lifecycle):
    issued = issue(lifecycle)
    caller = lifecycle.authorize(issued.token)

    with pytest.raises(InvalidDurationError):
        lifecycle.extend(issued.token_id, 0, caller)
    with pytest.raises(NotFoundError):
        lifecycle.extend("missing", 10, caller)


def test_extend_keeps_requested_audience(lifecycle, codec):
    issued = lifecycle.generate("user123", "n", CLAIMS, 60, ["web", "cli"])
    caller = lifecycle.authorize(issued.token)

    extended = lifecycle.extend(issued.token_id, 5, caller)

    assert extended.name == "n"
    assert codec.decode(issued.token).payload["aud"] == ["web", "cli"]
    assert codec.decode(extended.token).payload["aud"] == ["web", "cli"]


def test_extend_past_max_datetime_is_a_duration_error(settings, store, clock):
    lifecycle = create_token_lifecycle(
        replace(settings, max_expiration_minutes=10 ** 9), store=store, clock=clock,
    )
    issued = lifecycle.generate("user123", "n", CLAIMS, 10 ** 9)
    caller = lifecycle.authorize(issued.token)

    last = issued.expires_at
    with pytest.raises(InvalidDurationError):
        for _ in range(10):
            last = lifecycle.extend(issued.token_id, 10 ** 9, caller).expires_at

    record = store.get(issued.token_id)
    assert record.expires_at == last
    assert record.status is TokenStatus.ACTIVE


def test_claims_cannot_be_changed_through_returned_objects(lifecycle, store, codec):
    claims = {"sub": "user123", "tags": ["a"], "profile": {"team": "core"}}
    issued = lifecycle.generate("user123", "n", claims, 60)
    claims["tags"].append("from-input")

    lifecycle.validate(issued.token).claims["tags"].append("from-validate")
    store.get(issued.token_id).claims["tags"].append("from-store")
    store.get(issued.token_id).claims["profile"]["team"] = "other"

    caller = lifecycle.authorize(issued.token)
    payload = codec.decode(lifecycle.extend(issued.token_id, 5, caller).token).payload

    assert payload["tags"] == ["a"]
    assert payload["profile"] == {"team": "core"}
    assert lifecycle.validate(issued.token).claims == {"sub": "user123", "tags": ["a"], "profile": {"team": "core"}}


# ---------------------------------------------------------------------------
# revoke
# ---------------------------------------------------------------------------


def test_revoke_is_idempotent(lifecycle, store, clock):
    issued = issue(lifecycle)
    caller = lifecycle.authorize(issued.token)

    first = lifecycle.revoke(issued.token_id, caller, reason="logout")
    clock.advance(minutes=1)
    second = lifecycle.revoke(issued.token_id, caller, reason="again")

    assert (first.status, first.newly_revoked) == (TokenStatus.REVOKED, True)
    assert (second.status, second.newly_revoked) == (TokenStatus.REVOKED, False)

    record = store.get(issued.token_id)
    assert record.revocation_reason == "logout"
    assert record.revoked_at == clock.now() - timedelta(minutes=1)


def test_revoke_forbidden_for_other_owner(lifecycle):
    target = issue(lifecycle)
    intruder = lifecycle.authorize(issue(lifecycle, owner="intruder").token)

    with pytest.raises(ForbiddenError):
        lifecycle.revoke(target.token_id, intruder)
    assert lifecycle.authorize(target.token).token_id == target.token_id


def test_revoke_expired_token(lifecycle, store, clock):
    expiring = issue(lifecycle, minutes=5)
    holder = issue(lifecycle, minutes=60)
    caller = lifecycle.authorize(holder.token)

    clock.advance(minutes=10)
    result = lifecycle.revoke(expiring.token_id, caller)

    assert result.newly_revoked is True
    assert store.get(expiring.token_id).status is TokenStatus.REVOKED


def test_bulk_revoke_reports_each_outcome(lifecycle):
    a = issue(lifecycle, name="a")
    b = issue(lifecycle, name="b")
    foreign = issue(lifecycle, owner="other")
    caller = lifecycle.authorize(a.token)
    lifecycle.revoke(b.token_id, caller)

    summary = lifecycle.bulk_revoke([a.token_id, b.token_id, foreign.token_id, "missing"], caller, "cleanup")

    assert summary.newly_revoked == [a.token_id]
    assert summary.already_revoked == [b.token_id]
    assert summary.failed == [
        {"token_id": foreign.token_id, "reason": "forbidden"},
        {"token_id": "missing", "reason": "not_found"},
    ]
    assert summary.total == 4


def test_bulk_revoke_limits(settings, store, clock, lifecycle):
    caller = lifecycle.authorize(issue(lifecycle).token)
    with pytest.raises(ValueError):
        lifecycle.bulk_revoke([], caller)

    settings.bulk_revoke_limit = 2
    small = create_token_lifecycle(settings, store=store, clock=clock)
    with pytest.raises(ValueError):
        small.bulk_revoke(["a", "b", "c"], caller)


# ---------------------------------------------------------------------------
# sweep
# ---------------------------------------------------------------------------


def test_sweep_marks_expired_records(lifecycle, store, clock):
    expiring = issue(lifecycle, minutes=5)
    revoked = issue(lifecycle, minutes=5)
    live = issue(lifecycle, minutes=60)
    caller = lifecycle.authorize(live.token)
    lifecycle.revoke(revoked.token_id, caller)

    clock.advance(minutes=5)
    assert lifecycle.sweep_expired() == 1
    assert lifecycle.sweep_expired() == 0

    assert store.get(expiring.token_id).status is TokenStatus.EXPIRED
    assert store.get(revoked.token_id).status is TokenStatus.REVOKED
    assert store.get(live.token_id).status is TokenStatus.ACTIVE

    with pytest.raises(TokenExpiredError):
        lifecycle.authorize(expiring.token)
    with pytest.raises(AlreadyExpiredError):
        lifecycle.extend(expiring.token_id, 10, caller)
    assert lifecycle.revoke(expiring.token_id, caller).newly_revoked is True


# ---------------------------------------------------------------------------
# concurrency
# ---------------------------------------------------------------------------


class InterleavingStore(InMemoryTokenStore):
    """Runs `interleave` once, between an update's read and its write."""

    def __init__(self) -> None:
        super().__init__()
        self.interleave = None

    def update(self, token_id, mutation):
        pending = [self.interleave] if self.interleave else []
        self.interleave = None

        def wrapped(record):
            result = mutation(record)
            if pending:
                pending.pop()()
            return result

        return super().update(token_id, wrapped)


def test_revoke_committed_during_extend_wins(settings, clock):
    store = InterleavingStore()
    lifecycle = create_token_lifecycle(settings, store=store, clock=clock)
    issued = issue(lifecycle)
    caller = lifecycle.authorize(issued.token)

    store.interleave = lambda: lifecycle.revoke(issued.token_id, caller)
    with pytest.raises(AlreadyRevokedError):
        lifecycle.extend(issued.token_id, 30, caller)

    record = store.get(issued.token_id)
    assert record.status is TokenStatus.REVOKED
    assert record.expires_at == issued.expires_at
    with pytest.raises(TokenRevokedError):
        lifecycle.authorize(issued.token)


def test_concurrent_extends_are_all_applied(settings, clock):
    store = InterleavingStore()
    lifecycle = create_token_lifecycle(settings, store=store, clock=clock)
    issued = issue(lifecycle)
    caller = lifecycle.authorize(issued.token)

    store.interleave = lambda: lifecycle.extend(issued.token_id, 10, caller)
    result = lifecycle.extend(issued.token_id, 30, caller)

    assert result.expires_at == issued.expires_at + timedelta(minutes=40)


def test_threaded_extend_and_revoke_race(settings, clock):
    store = InMemoryTokenStore(max_attempts=1000)
    lifecycle = create_token_lifecycle(settings, store=store, clock=clock)
    issued = issue(lifecycle)
    caller = lifecycle.authorize(issued.token)
    start = threading.Barrier(9)
    seen = []

    def extender():
        start.wait()
        for _ in range(50):
            try:
                seen.append(lifecycle.extend(issued.token_id, 1, caller).expires_at)
            except AlreadyRevokedError:
                return

    def revoker():
        start.wait()
        lifecycle.revoke(issued.token_id, caller)

    threads = [threading.Thread(target=extender) for _ in range(8)]
    threads.append(threading.Thread(target=revoker))
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    record = store.get(issued.token_id)
    assert record.status is TokenStatus.REVOKED
    assert all(e >= issued.expires_at for e in seen)
    assert record.expires_at == max(seen, default=issued.expires_at)
    with pytest.raises(TokenRevokedError):
        lifecycle.authorize(issued.token)
    with pytest.raises(AlreadyRevokedError):
        lifecycle.extend(issued.token_id, 1, caller)
