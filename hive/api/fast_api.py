"""
FastAPI Router: Health and Authentication

This module defines the account endpoints exposed by the backend. It handles:
- Service health probe
- User signup and login (bearer JWT issued in the response body)
- Current-user lookup and logout

Each endpoint validates input via Pydantic models and returns structured
responses with camelCase keys.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hive.api.models import LoginRequest, SignupRequest, UserOut
from hive.api.utils import get_current_user
from hive.database.core.funcs import login_user, signup_user
from hive.database.core.session import get_db
from hive.database.entities import User

router = APIRouter()
"""Creates the FastAPI router in which we define its routes"""


@router.get("/health")
def health():
    """
    Liveness probe. Requires no authentication.

    Returns
    -------
    dict
        {'status': 'OK', 'message': str}
    """
    return {"status": "OK", "message": "Hive Backend is running!"}


@router.post("/api/auth/signup", status_code=201)
def signup(data: SignupRequest, db: Session = Depends(get_db)):
    """
    Register a new user account.

    Request Body
    ------------
    SignupRequest {email: str, password: str, name: str, displayName?: str}

    Returns
    -------
    dict
        {'message': str, 'user': {...}, 'token': str}. The password hash
        is never part of `user`.

    Raises
    ------
    HTTPException 400
        If a field is missing or fails validation.
    HTTPException 409
        If the email is already registered.
    """
    user, token = signup_user(db, data)
    return {"message": "User created successfully", "user": UserOut.dump(user), "token": token}


@router.post("/api/auth/login")
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """
    Authenticate a user and issue a bearer token.

    Request Body
    ------------
    LoginRequest {email: str, password: str}

    Returns
    -------
    dict
        {'message': str, 'user': {...}, 'token': str}

    Raises
    ------
    HTTPException 401
        If the email is unknown or the password does not match.
    """
    user, token = login_user(db, data)
    return {"message": "Login successful", "user": UserOut.dump(user), "token": token}


@router.get("/api/auth/me")
def me(user: User = Depends(get_current_user)):
    """Return the authenticated user's profile."""
    return {"user": UserOut.dump(user)}


@router.post("/api/auth/logout")
def logout(user: User = Depends(get_current_user)):
    """
    Acknowledge a logout.

    Tokens are stateless, so the client discards its copy; nothing is
    revoked server side.
    """
    return {"message": "Logout successful"}
