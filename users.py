import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from auth import Identity, hash_password, issue_auth_cookie, require_identity, verify_password
from database import CONFLICT_MESSAGES, USERS, MongoStore, get_store, parse_id, serialize_document
from errors import BadRequestError, ConflictError, NotFoundError
from schemas import User as UserSchema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["user"])

HIDDEN_FIELDS = ("password",)
INVALID_CREDENTIALS = "Invalid login credentials"

# Checked against when the email is unknown so both failures cost one hash
_DUMMY_HASH = hash_password("not-a-real-password")


def public_user(doc: dict) -> dict:
    return serialize_document(doc, hidden=HIDDEN_FIELDS)


# Models for requests
class RegisterRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    fullName: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=8, max_length=50)
    email: EmailStr
    role: str = Field(..., min_length=1, max_length=50)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=50)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class UserUpdateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    fullName: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=50)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower() if v else v


def _ensure_email_free(store: MongoStore, email: str, current_id=None) -> None:
    existing = store.find_by_field(USERS, "email", email)
    if existing is not None and existing["_id"] != current_id:
        raise ConflictError(CONFLICT_MESSAGES[USERS])


def _get_user(store: MongoStore, user_id: str) -> dict:
    user = store.find_by_id(USERS, parse_id(user_id))
    if user is None:
        raise NotFoundError(f"User {user_id} not found.")
    return user


@router.get("/list")
def list_users(
    identity: Identity = Depends(require_identity),
    store: MongoStore = Depends(get_store),
) -> List[dict]:
    return [public_user(u) for u in store.list_all(USERS)]


@router.get("/me")
def get_me(
    identity: Identity = Depends(require_identity),
    store: MongoStore = Depends(get_store),
):
    return public_user(_get_user(store, identity.user_id))


@router.get("/{user_id}")
def get_user(
    user_id: str,
    identity: Identity = Depends(require_identity),
    store: MongoStore = Depends(get_store),
):
    return public_user(_get_user(store, user_id))


@router.post("/register")
def register(
    payload: RegisterRequest,
    request: Request,
    response: Response,
    store: MongoStore = Depends(get_store),
):
    _ensure_email_free(store, payload.email)
    user = UserSchema(
        fullName=payload.fullName,
        email=payload.email,
        password=hash_password(payload.password),
        role=payload.role,
        creationDate=datetime.now(timezone.utc),
    )
    user_id, stored = store.insert(USERS, user)
    issue_auth_cookie(request, response, stored)
    logger.info("Registered user %s", user_id)
    return {
        "result": {"acknowledged": True, "insertedId": str(user_id)},
        "addedUser": public_user(stored),
    }


@router.post("/login")
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    store: MongoStore = Depends(get_store),
):
    user = store.find_by_field(USERS, "email", payload.email)
    if user is None:
        verify_password(payload.password, _DUMMY_HASH)
    if user is None or not verify_password(payload.password, user.get("password", "")):
        logger.info("Failed login attempt")
        raise BadRequestError(INVALID_CREDENTIALS)
    issue_auth_cookie(request, response, user)
    logger.info("User %s logged in", user["_id"])
    return {"message": f"Welcome back {user['fullName']}."}


@router.put("/me")
def update_me(
    payload: Optional[UserUpdateRequest] = None,
    identity: Identity = Depends(require_identity),
    store: MongoStore = Depends(get_store),
):
    current = _get_user(store, identity.user_id)
    payload = payload or UserUpdateRequest()

    if payload.email and payload.email != current.get("email"):
        _ensure_email_free(store, payload.email, current_id=current["_id"])

    updated = {
        "fullName": payload.fullName or current.get("fullName"),
        "email": payload.email or current.get("email"),
        "lastUpdated": datetime.now(timezone.utc),
        "lastUpdatedBy": current.get("fullName"),
    }
    if payload.password:
        updated["password"] = hash_password(payload.password)

    if store.update_partial(USERS, current["_id"], updated).matched == 0:
        raise NotFoundError(f"User {identity.user_id} not found.")
    logger.info("Updated user %s", identity.user_id)
    return {"message": f"User {identity.user_id} updated!"}
