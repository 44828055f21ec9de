"""Authentication utilities: password hashing and JWT token management."""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from opentelemetry import trace
from passlib.context import CryptContext

from .database import get_db
from .errors import AuthenticationError
from .observability import get_app_metrics

# Initialize logger
logger = structlog.get_logger(__name__)

metrics = get_app_metrics()

# JWT Configuration
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "your-secret-key-here-change-in-production")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
EXPIRATION_DAYS = int(os.getenv("JWT_EXPIRATION_DAYS", "7"))

# Password hashing
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)

# Missing credentials are reported by get_current_user as 401
security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a plaintext password."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: str) -> str:
    """
    Create a JWT access token for a user.

    Args:
        user_id: The user's storage identity

    Returns:
        Encoded JWT token expiring after ``JWT_EXPIRATION_DAYS``
    """
    tracer = trace.get_tracer(__name__)

    with tracer.start_as_current_span("create_access_token") as span:
        span.set_attribute("user.id", user_id)

        expire = datetime.now(UTC) + timedelta(days=EXPIRATION_DAYS)
        to_encode = {"sub": user_id, "exp": expire}
        encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

        logger.debug("jwt_token_created", user_id=user_id)

        return encoded_jwt


def decode_access_token(token: str) -> dict | None:
    """
    Decode and verify a JWT token.

    Returns:
        Decoded token payload or None if invalid or expired
    """
    tracer = trace.get_tracer(__name__)

    with tracer.start_as_current_span("decode_access_token") as span:
        try:
            payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except JWTError as e:
            logger.warning("jwt_token_decode_failed", error=str(e), error_type=type(e).__name__)
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            return None

        span.set_attribute("user.id", str(payload.get("sub")))
        return payload


def _reject(
    reason: str, message: str = "Invalid authentication credentials"
) -> AuthenticationError:
    metrics.auth_failures.add(1, {"reason": reason})
    return AuthenticationError(message)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict:
    """
    Dependency to get the current authenticated user.

    Validates the bearer token and loads the user from the database on
    every request, so role changes take effect immediately.
    """
    tracer = trace.get_tracer(__name__)

    with tracer.start_as_current_span("get_current_user") as span:
        if credentials is None:
            logger.warning("auth_failed_missing_token")
            raise _reject("missing_token", "Authentication token is required")

        payload = decode_access_token(credentials.credentials)
        if payload is None:
            logger.warning("auth_failed_invalid_token")
            raise _reject("invalid_token")

        user_id = payload.get("sub")
        if not user_id:
            logger.warning("auth_failed_missing_user_id")
            raise _reject("missing_subject")

        span.set_attribute("user.id", user_id)

        try:
            user_obj_id = ObjectId(user_id)
        except (InvalidId, TypeError):
            logger.warning("auth_failed_malformed_user_id", user_id=user_id)
            raise _reject("malformed_subject")

        user = await get_db().users.find_one({"_id": user_obj_id}, {"password": 0})
        if user is None:
            logger.warning("auth_failed_user_not_found", user_id=user_id)
            raise _reject("user_not_found", "User not found")

        logger.debug("auth_user_authenticated", user_id=user_id)

        return user
