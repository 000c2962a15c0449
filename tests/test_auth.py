"""Tests for admin authentication and publishing webhook signature checks."""
from app.auth import SESSION_COOKIE, sign_payload, verify_password, verify_webhook


# ---------------------------------------------------------------------------
# Password verification (real bcrypt, no mocks)
# ---------------------------------------------------------------------------

async def test_verify_correct_password():
    assert await verify_password("testpassword123") is True


async def test_verify_wrong_password():
    assert await verify_password("wrongpassword") is False


async def test_verify_similar_password():
    """Passwords differing by one character are rejected."""
    assert await verify_password("testpassword12") is False
    assert await verify_password("testpassword1234") is False


# ---------------------------------------------------------------------------
# Session-based access control (real DB, real routing)
# ---------------------------------------------------------------------------

async def test_require_admin_no_cookie_returns_401(client):
    resp = await client.get("/admin/posts")
    assert resp.status_code == 401
    assert "Not authenticated" in resp.json()["detail"]


async def test_require_admin_invalid_cookie_returns_401(client):
    resp = await client.get("/admin/posts", cookies={SESSION_COOKIE: "nonexistent-session-id"})
    assert resp.status_code == 401
    assert "Session expired" in resp.json()["detail"]


async def test_require_admin_valid_session(client, admin_session):
    resp = await client.get("/admin/posts", cookies=admin_session)
    assert resp.status_code == 200
    assert resp.json() == []


# ---------------------------------------------------------------------------
# Webhook verification
# ---------------------------------------------------------------------------

def test_valid_hmac_signature():
    body = b'{"title": "x"}'
    sig = sign_payload(body, "1700000000", "secret")
    assert sig.startswith("sha256=")
    assert verify_webhook(body, "secret", sig, "1700000000", None) is True


def test_signature_bound_to_timestamp():
    body = b'{"title": "x"}'
    sig = sign_payload(body, "1700000000", "secret")
    assert verify_webhook(body, "secret", sig, "1700000001", None) is False


def test_signature_bound_to_body():
    sig = sign_payload(b"original", "1", "secret")
    assert verify_webhook(b"tampered", "secret", sig, "1", None) is False


def test_bearer_token():
    assert verify_webhook(b"", "secret", None, None, "Bearer secret") is True
    assert verify_webhook(b"", "secret", None, None, "Bearer wrong") is False
    assert verify_webhook(b"", "secret", None, None, "secret") is False


def test_no_credentials():
    assert verify_webhook(b"{}", "secret", None, None, None) is False
