"""
Player accounts: credential rules, password hashing and bearer tokens.

Usernames are 2-32 characters of letters, digits and underscore; passwords
must be non-empty. Bcrypt reads at most 72 bytes, so longer passwords are
truncated before hashing and checking. Tokens carry the player id and username
and last ACCESS_TOKEN_EXPIRE_DAYS; the team is read from the account on every
request because it can change after the token was issued.
"""

import os
import re
from datetime import datetime, timedelta
from typing import Any

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from .models import Player

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]{2,32}$")
USERNAME_RULE = "Username must be 2-32 characters, letters numbers and underscore only"
PASSWORD_REQUIRED = "Username and password required"

SECRET_KEY = os.environ.get("JWT_SECRET", "streetart-ctf-dev-secret")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = 7

BCRYPT_MAX_BYTES = 72
BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "10"))

bearer = HTTPBearer(auto_error=False)


def check_credentials(username: str, password: str) -> None:
    """Raise 400 unless the pair may be used to register."""
    if not username or not password:
        raise HTTPException(status_code=400, detail=PASSWORD_REQUIRED)
    if not USERNAME_PATTERN.match(username):
        raise HTTPException(status_code=400, detail=USERNAME_RULE)


def hash_password(password: str) -> str:
    secret = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8")[:BCRYPT_MAX_BYTES], password_hash.encode("ascii"))


def create_access_token(player: Player) -> str:
    claims = {
        "sub": player.id,
        "username": player.username,
        "exp": datetime.utcnow() + timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS),
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict[str, Any] | None:
    """Claims of a valid, unexpired token; None otherwise."""
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    return claims if claims.get("sub") else None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_optional_player(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> Player | None:
    """
    The signed-in player, or None when no token was sent.
    A token that is sent but invalid, or names a missing or renamed account, is a 401.
    """
    if not credentials:
        return None
    claims = decode_token(credentials.credentials)
    if claims is None:
        raise _unauthorized("Invalid or expired token")
    player = db.get(Player, claims["sub"])
    if player is None or player.username != claims.get("username"):
        raise _unauthorized("Player not found")
    return player


def get_current_player(player: Player | None = Depends(get_optional_player)) -> Player:
    if player is None:
        raise _unauthorized("Not authenticated")
    return player
