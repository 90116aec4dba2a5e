try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import timedelta

import jwt
import pytest

from broker.services.api_keys import ApiKeyError, ApiKeyService


def test_issue_and_verify_round_trip() -> None:
    service = ApiKeyService(secret="signing-secret", ttl=timedelta(days=30))

    claims = service.verify(service.issue({"clientEmail": "ops@example.com", "clientName": None}))

    assert claims["clientEmail"] == "ops@example.com"
    assert "clientName" not in claims
    assert claims["exp"] - claims["iat"] == 30 * 24 * 3600
    assert claims["jti"]


def test_keys_without_ttl_do_not_expire() -> None:
    service = ApiKeyService(secret="signing-secret")

    assert "exp" not in service.verify(service.issue({"clientName": "crm"}))


def test_expired_key_is_rejected() -> None:
    service = ApiKeyService(secret="signing-secret")
    token = jwt.encode({"clientName": "crm", "exp": 1}, "signing-secret", algorithm="HS256")

    with pytest.raises(ApiKeyError, match="expired"):
        service.verify(token)


def test_tampered_key_is_rejected() -> None:
    service = ApiKeyService(secret="signing-secret")
    forged = ApiKeyService(secret="guessed").issue({"clientName": "crm"})

    with pytest.raises(ApiKeyError, match="invalid"):
        service.verify(forged)

    with pytest.raises(ApiKeyError):
        service.verify("not-a-jwt")


def test_main_key_check() -> None:
    open_service = ApiKeyService(secret="s")
    guarded = ApiKeyService(secret="s", main_key="main")

    assert open_service.check_main_key(None)
    assert not open_service.requires_main_key
    assert guarded.requires_main_key
    assert guarded.check_main_key("main")
    assert not guarded.check_main_key("Main")
    assert not guarded.check_main_key(None)
