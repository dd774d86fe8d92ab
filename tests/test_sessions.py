try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import jwt
import pytest

from safenode.core.config import SessionSettings
from safenode.core.errors import AuthErrorCode, SessionRejectedError
from safenode.services.sessions import LookupRetryPolicy, SessionIssuer, SessionValidator

EXPECTED_DELAYS = [0.075, 0.15, 0.3, 0.6, 1.2, 2.4]


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


@pytest.fixture
def settings() -> SessionSettings:
    return SessionSettings(jwt_secret="unit-test-secret", token_ttl_seconds=3600)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


def _validator(settings, lookup, sleep) -> SessionValidator:
    return SessionValidator(settings, account_lookup=lookup, sleep=sleep)


def _new_account(account_store, email="user@example.com"):
    return account_store.create(
        email=email,
        display_name="User",
        password_hash="!sso$x",
        email_verified=True,
    )


def test_retry_policy_doubles_from_initial_delay() -> None:
    assert list(LookupRetryPolicy().delays()) == pytest.approx(EXPECTED_DELAYS)


def test_issued_token_carries_session_claims(settings, account_store, clock) -> None:
    account = _new_account(account_store)
    token = SessionIssuer(settings, clock=clock).issue(account)

    claims = jwt.decode(
        token,
        "unit-test-secret",
        algorithms=["HS256"],
        audience="safenode-api",
        issuer="safenode",
        options={"verify_exp": False},
    )
    assert claims["userId"] == account.id
    assert claims["email"] == "user@example.com"
    assert claims["tokenVersion"] == 1
    assert claims["iat"] == int(clock.now)
    assert claims["exp"] - claims["iat"] == 3600


def test_issuer_requires_secret(isolated_environ) -> None:
    isolated_environ.pop("JWT_SECRET", None)
    with pytest.raises(ValueError):
        SessionIssuer(SessionSettings(jwt_secret=None))


@pytest.mark.asyncio
async def test_valid_token_resolves_account(settings, account_store, sleep) -> None:
    account = _new_account(account_store)
    token = SessionIssuer(settings).issue(account)

    resolved = await _validator(settings, account_store.find_by_id, sleep).validate(token)

    assert resolved.id == account.id
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_version_bump_invalidates_older_tokens(settings, account_store, sleep) -> None:
    account = _new_account(account_store)
    issuer = SessionIssuer(settings)
    old_token = issuer.issue(account)

    bumped = account_store.bump_token_version(account.id)
    validator = _validator(settings, account_store.find_by_id, sleep)

    with pytest.raises(SessionRejectedError) as excinfo:
        await validator.validate(old_token)
    assert excinfo.value.code is AuthErrorCode.TOKEN_VERSION_MISMATCH

    assert (await validator.validate(issuer.issue(bumped))).token_version == 2


@pytest.mark.asyncio
async def test_lookup_retries_until_account_becomes_visible(
    settings, account_store, sleep
) -> None:
    account = _new_account(account_store)
    token = SessionIssuer(settings).issue(account)
    attempts = {"count": 0}

    def lagging_lookup(account_id: str):
        attempts["count"] += 1
        if attempts["count"] < 3:
            return None
        return account_store.find_by_id(account_id)

    resolved = await _validator(settings, lagging_lookup, sleep).validate(token)

    assert resolved.id == account.id
    assert attempts["count"] == 3
    assert sleep.calls == pytest.approx([0.075, 0.15])


@pytest.mark.asyncio
async def test_unknown_user_after_all_retries(settings, account_store, sleep) -> None:
    account = _new_account(account_store)
    token = SessionIssuer(settings).issue(account)
    lookups: list[str] = []

    def missing(account_id: str):
        lookups.append(account_id)
        return None

    with pytest.raises(SessionRejectedError) as excinfo:
        await _validator(settings, missing, sleep).validate(token)

    assert excinfo.value.code is AuthErrorCode.USER_NOT_FOUND
    assert len(lookups) == 7
    assert sleep.calls == pytest.approx(EXPECTED_DELAYS)


@pytest.mark.asyncio
async def test_async_lookup_is_awaited(settings, account_store, sleep) -> None:
    account = _new_account(account_store)
    token = SessionIssuer(settings).issue(account)

    async def lookup(account_id: str):
        return account_store.find_by_id(account_id)

    resolved = await _validator(settings, lookup, sleep).validate(token)
    assert resolved.id == account.id


@pytest.mark.asyncio
async def test_lookup_failure_is_auth_error(settings, account_store, sleep) -> None:
    account = _new_account(account_store)
    token = SessionIssuer(settings).issue(account)

    def broken(account_id: str):
        raise RuntimeError("database unavailable")

    with pytest.raises(SessionRejectedError) as excinfo:
        await _validator(settings, broken, sleep).validate(token)
    assert excinfo.value.code is AuthErrorCode.AUTH_ERROR


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, ""])
async def test_missing_token(settings, account_store, sleep, token) -> None:
    with pytest.raises(SessionRejectedError) as excinfo:
        await _validator(settings, account_store.find_by_id, sleep).validate(token)
    assert excinfo.value.code is AuthErrorCode.MISSING_TOKEN


@pytest.mark.asyncio
async def test_expired_token_is_invalid(settings, account_store, clock, sleep) -> None:
    account = _new_account(account_store)
    clock.now = 1_000_000.0
    token = SessionIssuer(settings, clock=clock).issue(account)

    with pytest.raises(SessionRejectedError) as excinfo:
        await _validator(settings, account_store.find_by_id, sleep).validate(token)
    assert excinfo.value.code is AuthErrorCode.INVALID_TOKEN


@pytest.mark.asyncio
async def test_token_signed_with_other_secret_is_invalid(
    settings, account_store, sleep
) -> None:
    account = _new_account(account_store)
    forged = SessionIssuer(SessionSettings(jwt_secret="someone-else")).issue(account)

    with pytest.raises(SessionRejectedError) as excinfo:
        await _validator(settings, account_store.find_by_id, sleep).validate(forged)
    assert excinfo.value.code is AuthErrorCode.INVALID_TOKEN


@pytest.mark.asyncio
async def test_tampered_payload_is_invalid(settings, account_store, sleep) -> None:
    account = _new_account(account_store)
    header, payload, signature = SessionIssuer(settings).issue(account).split(".")
    tampered = ".".join([header, payload[:-2] + ("AA" if payload[-2:] != "AA" else "BB"), signature])

    with pytest.raises(SessionRejectedError) as excinfo:
        await _validator(settings, account_store.find_by_id, sleep).validate(tampered)
    assert excinfo.value.code is AuthErrorCode.INVALID_TOKEN


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"userId": 42},
        {"tokenVersion": 0},
        {"tokenVersion": "2"},
        {"tokenVersion": True},
    ],
)
async def test_malformed_claims_are_invalid(settings, account_store, sleep, overrides) -> None:
    account = _new_account(account_store)
    claims = jwt.decode(
        SessionIssuer(settings).issue(account),
        "unit-test-secret",
        algorithms=["HS256"],
        audience="safenode-api",
    )
    claims.update(overrides)
    token = jwt.encode(claims, "unit-test-secret", algorithm="HS256")

    with pytest.raises(SessionRejectedError) as excinfo:
        await _validator(settings, account_store.find_by_id, sleep).validate(token)
    assert excinfo.value.code is AuthErrorCode.INVALID_TOKEN


@pytest.mark.asyncio
async def test_missing_token_version_defaults_to_one(settings, account_store, sleep) -> None:
    account = _new_account(account_store)
    claims = jwt.decode(
        SessionIssuer(settings).issue(account),
        "unit-test-secret",
        algorithms=["HS256"],
        audience="safenode-api",
    )
    del claims["tokenVersion"]
    token = jwt.encode(claims, "unit-test-secret", algorithm="HS256")

    resolved = await _validator(settings, account_store.find_by_id, sleep).validate(token)
    assert resolved.id == account.id
