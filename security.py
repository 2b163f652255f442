import os
from datetime import datetime, timedelta
from typing import Optional, Tuple

import jwt
from dotenv import load_dotenv
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from errors import AuthError

load_dotenv()

# Security/JWT setup
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_EXPIRES_MIN = int(os.getenv("JWT_EXPIRES_MIN", str(60 * 24 * 7)))
security = HTTPBearer(auto_error=False)
# "plaintext" only verifies customers registered before hashing; they are rehashed on login
password_ctx = CryptContext(schemes=["bcrypt", "plaintext"], deprecated=["plaintext"])


def hash_password(password: str) -> str:
    return password_ctx.hash(password)


def verify_password(password: str, stored: str) -> Tuple[bool, Optional[str]]:
    """Check a password; the second item is a fresh hash when the stored one should be replaced."""
    if not stored:
        return False, None
    return password_ctx.verify_and_update(password, stored)


def create_token(customer: dict) -> str:
    payload = {
        "sub": str(customer["_id"]),
        "phone": customer.get("phone"),
        "exp": datetime.utcnow() + timedelta(minutes=JWT_EXPIRES_MIN),
        "iat": datetime.utcnow(),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthError("Invalid token")
    if not payload.get("sub"):
        raise AuthError("Invalid token")
    return payload


def get_current_customer_id(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> str:
    if credentials is None:
        raise AuthError("No token")
    return decode_token(credentials.credentials)["sub"]


def get_optional_customer_id(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Optional[str]:
    """Customer id from the bearer token, or None for anonymous callers and bad tokens."""
    if credentials is None:
        return None
    try:
        return decode_token(credentials.credentials)["sub"]
    except AuthError:
        return None
