import pytest

from nutritrack.core.exceptions import DuplicateUserError
from nutritrack.services.results import AuthFailure
from nutritrack.services.user_service import UserService

PASSWORD = "correct-horse-battery"


@pytest.fixture
def accounts(services, clock):
    return UserService(services.users, services.hasher, max_failed_attempts=5, lockout_minutes=15, clock=clock)


def _fail(accounts, times, identifier="alice"):
    return [accounts.authenticate(identifier, "wrong-password") for _ in range(times)]


def test_register_hashes_and_normalizes(services, accounts):
    user = accounts.register("  Alice ", "Alice@Example.COM", PASSWORD)

    assert user.username == "alice"
    assert user.email == "alice@example.com"
    assert services.hasher.is_hashed(user.password)
    assert services.hasher.verify(PASSWORD, user.password)


def test_register_duplicate_username_or_email(accounts):
    accounts.register("alice", "alice@example.com", PASSWORD)

    with pytest.raises(DuplicateUserError):
        accounts.register("ALICE", "other@example.com", PASSWORD)
    with pytest.raises(DuplicateUserError):
        accounts.register("other", "alice@example.com", PASSWORD)


def test_login_by_username_or_email(services, accounts, clock):
    accounts.register("alice", "alice@example.com", PASSWORD)

    by_name = accounts.authenticate("Alice", PASSWORD)
    by_email = accounts.authenticate(" ALICE@example.com ", PASSWORD)

    assert by_name.ok and by_email.ok
    assert services.users.find_by_id(by_name.user.id).last_login == clock.now


def test_unknown_user_and_wrong_password_look_the_same(accounts):
    accounts.register("alice", "alice@example.com", PASSWORD)

    assert accounts.authenticate("nobody", PASSWORD).failure == AuthFailure.INVALID_CREDENTIALS
    assert accounts.authenticate("alice", "wrong-password").failure == AuthFailure.INVALID_CREDENTIALS


def test_fifth_failure_locks_the_account(services, accounts):
    user = accounts.register("alice", "alice@example.com", PASSWORD)

    results = _fail(accounts, 5)

    assert [r.failure for r in results[:4]] == [AuthFailure.INVALID_CREDENTIALS] * 4
    assert results[4].failure == AuthFailure.ACCOUNT_LOCKED
    assert results[4].minutes_remaining == 15
    stored = services.users.find_by_id(user.id)
    assert stored.failed_login_attempts == 5
    assert stored.locked_until is not None


def test_locked_account_rejects_correct_password_without_counting(services, accounts, clock):
    user = accounts.register("alice", "alice@example.com", PASSWORD)
    _fail(accounts, 5)
    clock.advance(minutes=5)

    result = accounts.authenticate("alice", PASSWORD)

    assert result.failure == AuthFailure.ACCOUNT_LOCKED
    assert result.minutes_remaining == 10
    assert services.users.find_by_id(user.id).failed_login_attempts == 5


def test_remaining_minutes_round_up(accounts, clock):
    accounts.register("alice", "alice@example.com", PASSWORD)
    _fail(accounts, 5)

    clock.advance(seconds=1)
    assert accounts.authenticate("alice", PASSWORD).minutes_remaining == 15

    clock.advance(minutes=14, seconds=29)
    assert accounts.authenticate("alice", PASSWORD).minutes_remaining == 1


def test_expired_lock_resets_and_login_succeeds(services, accounts, clock):
    user = accounts.register("alice", "alice@example.com", PASSWORD)
    _fail(accounts, 5)
    clock.advance(minutes=15, seconds=1)

    result = accounts.authenticate("alice", PASSWORD)

    assert result.ok
    stored = services.users.find_by_id(user.id)
    assert stored.failed_login_attempts == 0
    assert stored.locked_until is None
    assert stored.last_failed_login is None


def test_expired_lock_starts_a_fresh_count(services, accounts, clock):
    user = accounts.register("alice", "alice@example.com", PASSWORD)
    _fail(accounts, 5)
    clock.advance(minutes=16)

    result = accounts.authenticate("alice", "wrong-password")

    assert result.failure == AuthFailure.INVALID_CREDENTIALS
    assert services.users.find_by_id(user.id).failed_login_attempts == 1


def test_success_resets_failed_attempts(services, accounts):
    user = accounts.register("alice", "alice@example.com", PASSWORD)
    _fail(accounts, 3)

    assert accounts.authenticate("alice", PASSWORD).ok
    assert services.users.find_by_id(user.id).failed_login_attempts == 0


def test_blocked_user_with_correct_password(services, accounts):
    user = accounts.register("alice", "alice@example.com", PASSWORD)
    services.users.set_blocked(user.id, True)

    assert accounts.authenticate("alice", PASSWORD).failure == AuthFailure.ACCOUNT_BLOCKED
    assert accounts.authenticate("alice", "wrong-password").failure == AuthFailure.INVALID_CREDENTIALS


def test_password_shaped_like_a_bcrypt_hash_is_still_hashed(services, accounts):
    chosen = "$2b$04$" + "a" * 53
    user = accounts.register("bob", "bob@example.com", chosen)

    assert user.password != chosen
    assert services.hasher.verify(chosen, user.password)
    assert accounts.authenticate("bob", chosen).ok
