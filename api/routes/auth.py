"""Authentication endpoints."""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends

from ..auth import create_access_token, get_current_user, hash_password, verify_password
from ..database import get_db
from ..errors import AuthenticationError, ConflictError, failure_boundary
from ..models import AuthResponse, LoginRequest, SignupRequest, UserEnvelope
from ..observability import get_app_metrics, get_tracer
from ..services.expansion import user_response
from ..services.identifiers import insert_with_business_id

# Initialize logger
logger = structlog.get_logger(__name__)

# Get tracer and metrics
tracer = get_tracer(__name__)
metrics = get_app_metrics()

router = APIRouter(prefix="/auth", tags=["authentication"])

INVALID_LOGIN = "Invalid email or password"


@router.post("/signup", response_model=AuthResponse, status_code=201)
async def signup(user: SignupRequest):
    """
    Register a new user and return a JWT token.

    Email and user name must both be unused. Users get the Contributor
    role unless roles are given.
    """
    with tracer.start_as_current_span("signup") as span, failure_boundary(
        "Error creating user account"
    ):
        span.set_attribute("user.name", user.user_name)

        logger.info("user_signup_attempt", email=user.email, user_name=user.user_name)

        db = get_db()

        existing_user = await db.users.find_one(
            {"$or": [{"email": user.email}, {"user_name": user.user_name}]}, {"_id": 1}
        )
        if existing_user:
            logger.warning("signup_failed_duplicate", email=user.email, user_name=user.user_name)
            metrics.auth_failures.add(1, {"reason": "duplicate_user"})
            raise ConflictError("User with this email or username already exists")

        now = datetime.now(UTC)
        user_doc = {
            "user_name": user.user_name,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "email": user.email,
            "phone": user.phone,
            "institution": user.institution,
            "password": hash_password(user.password),
            "roles": list(dict.fromkeys(role.value for role in user.roles)),
            "created_at": now,
            "updated_at": now,
        }

        user_obj_id = await insert_with_business_id(db.users, user_doc, "user_id", "USER")
        user_id = str(user_obj_id)

        span.set_attribute("user.id", user_id)

        token = create_access_token(user_id=user_id)

        logger.info("user_signed_up_successfully", user_id=user_id, roles=user_doc["roles"])
        metrics.user_signups.add(1)
        metrics.entities_created.add(1, {"entity": "user"})

        return AuthResponse(
            message="User created successfully", token=token, user=user_response(user_doc)
        )


@router.post("/login", response_model=AuthResponse)
async def login(credentials: LoginRequest):
    """
    Log in with email and password and return a JWT token.

    An unknown email and a wrong password produce the same answer.
    """
    with tracer.start_as_current_span("login") as span, failure_boundary("Error during login"):
        logger.info("user_login_attempt", email=credentials.email)

        db = get_db()

        user = await db.users.find_one({"email": credentials.email})
        if not user or not verify_password(credentials.password, user["password"]):
            logger.warning("login_failed_invalid_credentials")
            metrics.auth_failures.add(1, {"reason": "invalid_credentials"})
            raise AuthenticationError(INVALID_LOGIN)

        user_id = str(user["_id"])
        span.set_attribute("user.id", user_id)

        token = create_access_token(user_id=user_id)

        logger.info("user_logged_in_successfully", user_id=user_id)
        metrics.user_logins.add(1)

        return AuthResponse(message="Login successful", token=token, user=user_response(user))


@router.get("/me", response_model=UserEnvelope)
async def me(current_user: dict = Depends(get_current_user)):
    """Return the authenticated user."""
    return UserEnvelope(message="User retrieved successfully", user=user_response(current_user))
