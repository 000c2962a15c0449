"""Admin authentication (bcrypt + session cookie) and publishing webhook signatures."""
import asyncio
import hashlib
import hmac

import bcrypt
from fastapi import HTTPException, Request, status

from app import database as db
from app.config import settings

# Hash the configured password once at import time so comparisons are fast.
_hashed: bytes = bcrypt.hashpw(settings.admin_password.encode(), bcrypt.gensalt())

SESSION_COOKIE = "geckopress_admin_session"
SIGNATURE_PREFIX = "sha256="


async def verify_password(plain: str) -> bool:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, bcrypt.checkpw, plain.encode(), _hashed)


async def require_admin(request: Request) -> str:
    """FastAPI dependency: raises 401 if no valid session cookie."""
    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    row = await db.get_admin_session(session_id)
    if not row:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")
    return session_id


def sign_payload(body: bytes, timestamp: str, secret: str) -> str:
    mac = hmac.new(secret.encode(), timestamp.encode() + body, hashlib.sha256)
    return SIGNATURE_PREFIX + mac.hexdigest()


def verify_webhook(
    body: bytes,
    secret: str,
    signature: str | None,
    timestamp: str | None,
    authorization: str | None,
) -> bool:
    """Accept either an HMAC signature over ``timestamp + body`` or a bearer secret."""
    if signature and timestamp:
        expected = sign_payload(body, timestamp, secret)
        return hmac.compare_digest(signature, expected)
    if authorization and authorization.startswith("Bearer "):
        return hmac.compare_digest(authorization[len("Bearer "):], secret)
    return False
