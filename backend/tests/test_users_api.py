import pytest

from nutritrack.schemas.user import AccessLevel


@pytest.fixture
def admin(create_user):
    return create_user("root", access_level=AccessLevel.ADMIN)


def test_me_requires_a_session(client):
    response = client.get("/api/users/me")
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_me_returns_current_user(client, create_user, login):
    create_user()
    login()

    response = client.get("/api/users/me")

    assert response.status_code == 200
    assert response.json()["username"] == "alice"
    assert response.json()["email"] == "alice@example.com"


@pytest.mark.parametrize(
    "level, expected",
    [
        (AccessLevel.TRIAL_USER, 403),
        (AccessLevel.EDITOR, 403),
        (AccessLevel.MODERATOR, 200),
        (AccessLevel.ADMIN, 200),
    ],
)
def test_count_requires_moderator(client, create_user, login, level, expected):
    create_user("member", access_level=level)
    login("member")

    response = client.get("/api/users/count")

    assert response.status_code == expected
    if expected == 200:
        assert response.json() == {"count": 1}


def test_access_level_is_read_fresh_from_the_store(client, services, create_user, login):
    user = create_user("member", access_level=AccessLevel.MODERATOR)
    login("member")
    assert client.get("/api/users/count").status_code == 200

    with services.session_factory() as db:
        stored = db.get(type(user), user.id)
        stored.access_level = AccessLevel.TRIAL_USER
        db.commit()

    assert client.get("/api/users/count").status_code == 403


def test_admin_lists_users(client, admin, create_user, login):
    create_user()
    login("root")

    response = client.get("/api/users/")

    assert response.status_code == 200
    usernames = [u["username"] for u in response.json()]
    assert usernames == ["root", "alice"]
    assert response.json()[1]["is_blocked"] is False
    assert response.json()[1]["failed_login_attempts"] == 0


def test_blocking_ends_sessions_and_denies_access(client, services, admin, create_user, login, csrf_headers):
    target = create_user()
    victim_session = services.tokens.issue_tokens(target).tokens.refresh_token
    login("root")

    response = client.patch(f"/api/users/{target.id}/block", json={"blocked": True}, headers=csrf_headers())

    assert response.status_code == 200
    assert response.json()["data"]["revoked_sessions"] == 1
    assert services.users.find_by_id(target.id).is_blocked
    assert services.ledger.find(victim_session).is_revoked
    assert services.users.count_active_users() == 1


def test_blocked_admin_is_refused(client, services, admin, login):
    login("root")
    services.users.set_blocked(admin.id, True)

    response = client.get("/api/users/")

    assert response.status_code == 403
    assert response.json()["error"] == "Account blocked"


def test_admin_cannot_block_self(client, admin, login, csrf_headers):
    login("root")
    response = client.patch(f"/api/users/{admin.id}/block", json={"blocked": True}, headers=csrf_headers())
    assert response.status_code == 403


def test_block_unknown_user(client, admin, login, csrf_headers):
    login("root")
    response = client.patch("/api/users/9999/block", json={"blocked": True}, headers=csrf_headers())
    assert response.status_code == 404
    assert response.json()["error"] == "User not found"


def test_block_requires_csrf(client, admin, create_user, login):
    target = create_user()
    login("root")
    response = client.patch(f"/api/users/{target.id}/block", json={"blocked": True})
    assert response.status_code == 403
