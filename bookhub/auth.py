from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi import Header, Request
from jose import JWTError, jwt

from bookhub.errors import Unauthorized

ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # stored hash is not a bcrypt hash
        return False


def create_token(user_id: int, email: str, secret: str, expires_days: int = 7) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + timedelta(days=expires_days),
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def decode_token(token: str, secret: str) -> dict:
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
        claims["id"] = int(claims["sub"])
    except (JWTError, KeyError, TypeError, ValueError):
        raise Unauthorized()
    return claims


def verify_token(request: Request, authorization: str = Header(None)) -> dict:
    """Resolve the bearer token to its claims; every failure is the same 401."""
    if not authorization:
        raise Unauthorized()

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise Unauthorized()

    secret = request.app.state.settings.jwt_secret
    if not secret:
        raise Unauthorized()

    return decode_token(parts[1], secret)
