from datetime import timedelta

from nutritrack.core.clock import utcnow
from nutritrack.models.security import FAMILY_REVOKED, LOGOUT_EVERYWHERE
from nutritrack.services.token_ledger import RefreshTokenLedger


def _issue(ledger, token, user_id=1, family_id="family-1", days=30):
    return ledger.issue(token, user_id=user_id, family_id=family_id, expires_at=utcnow() + timedelta(days=days))


def test_issue_and_find(services):
    ledger = services.ledger
    _issue(ledger, "token-a")

    record = ledger.find("token-a")
    assert record is not None
    assert record.family_id == "family-1"
    assert ledger.is_active(record)
    assert ledger.find("missing") is None


def test_revoke_is_idempotent(services):
    ledger = services.ledger
    _issue(ledger, "token-a")

    first = ledger.revoke("token-a", replaced_by_token="token-b")
    second = ledger.revoke("token-a", replaced_by_token="token-c")

    assert first.is_revoked
    assert second.replaced_by_token == "token-b"
    assert second.revoked_at == first.revoked_at
    assert ledger.revoke("unknown-token") is None


def test_revoke_family_only_touches_that_family(services):
    ledger = services.ledger
    _issue(ledger, "a1", family_id="family-a")
    _issue(ledger, "a2", family_id="family-a")
    _issue(ledger, "b1", family_id="family-b")

    assert ledger.revoke_family(1, "family-a") == 2

    assert ledger.find("a1").replaced_by_token == FAMILY_REVOKED
    assert ledger.find("a2").is_revoked
    assert not ledger.find("b1").is_revoked


def test_revoke_all_for_user(services):
    ledger = services.ledger
    _issue(ledger, "u1-a", user_id=1, family_id="family-a")
    _issue(ledger, "u1-b", user_id=1, family_id="family-b")
    _issue(ledger, "u2-a", user_id=2, family_id="family-c")

    assert ledger.revoke_all_for_user(1) == 2
    assert ledger.find("u1-b").replaced_by_token == LOGOUT_EVERYWHERE
    assert not ledger.find("u2-a").is_revoked


def test_count_active_ignores_revoked_and_expired(services):
    ledger = services.ledger
    _issue(ledger, "live")
    _issue(ledger, "expired", days=-1)
    _issue(ledger, "revoked")
    ledger.revoke("revoked")

    assert ledger.count_active(1, "family-1") == 1


def test_suspicious_when_active_tokens_exceed_threshold(services):
    ledger = RefreshTokenLedger(services.session_factory, suspicious_threshold=2)
    _issue(ledger, "t1")
    _issue(ledger, "t2")
    assert not ledger.detect_suspicious_activity(1, "family-1")

    _issue(ledger, "t3")
    assert ledger.detect_suspicious_activity(1, "family-1")


def test_purge_expired(services):
    ledger = services.ledger
    _issue(ledger, "live")
    _issue(ledger, "expired", days=-1)

    assert ledger.purge_expired() == 1
    assert ledger.find("expired") is None
    assert ledger.find("live") is not None
