"""
Authentication endpoints - email + password, JWT bearer tokens.
"""

import logging

from fastapi import APIRouter, Depends, status

from app.dependencies import get_current_identity, get_user_service
from app.models.user import Identity, LoginRequest, RegisterRequest
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, users: UserService = Depends(get_user_service)):
    """
    Register a new account.

    Self-registration accepts citizen, family, police, hospital and fire.
    Returns the session token and the user without credentials.
    """
    result = users.register(request)
    return {"message": "User registered successfully", **result}


@router.post("/login")
def login(request: LoginRequest, users: UserService = Depends(get_user_service)):
    result = users.login(request.email, request.password)
    return {"message": "Login successful", **result}


@router.get("/me")
def get_current_user(
    identity: Identity = Depends(get_current_identity),
    users: UserService = Depends(get_user_service),
):
    return users.get_profile(identity.user_id)
