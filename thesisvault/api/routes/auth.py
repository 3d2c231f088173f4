"""
Authentication API Routes for ThesisVault.

Handles:
- User registration (Sign Up)
- User login (Token generation)
- Current user profile, password and activity stats
- Username availability
"""

from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from loguru import logger

from thesisvault.access.auth import AuthGate, Registration, UserProfile
from thesisvault.api.dependencies import (
    CurrentUser,
    ServiceContainer,
    get_auth_gate,
    get_client_ip,
    get_recorder,
    get_service_container,
)
from thesisvault.api.schemas import (
    ActivityStatsResponse,
    ErrorResponse,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    SignupRequest,
    TokenResponse,
    UserProfileResponse,
    UsernameAvailabilityResponse,
)
from thesisvault.security import create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])


def _profile_response(profile: UserProfile) -> UserProfileResponse:
    return UserProfileResponse.model_validate(profile)


@router.post(
    "/signup",
    response_model=UserProfileResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid registration data"},
        409: {"model": ErrorResponse, "description": "Username, email or student ID taken"},
    },
)
def signup(
    body: SignupRequest,
    auth_gate: AuthGate = Depends(get_auth_gate),
):
    """Register a new account, optionally with a student record."""
    profile = auth_gate.register(Registration(**body.model_dump()))
    logger.info(f"Registered user {profile.user_id} as {profile.role}")
    return _profile_response(profile)


@router.post(
    "/token",
    response_model=TokenResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid username or password"}},
)
def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    container: ServiceContainer = Depends(get_service_container),
    client_ip: str = Depends(get_client_ip),
):
    """
    Login endpoint.
    Returns a JWT whose subject is the user id.
    """
    profile = container.auth_gate.login(form_data.username, form_data.password)

    access_token = create_access_token(
        data={"sub": str(profile.user_id), "role": profile.role},
        expires_delta=timedelta(minutes=container.settings.access_token_expire_minutes),
        secret_key=container.settings.secret_key,
    )
    logger.info(f"Issued token for user {profile.user_id} from {client_ip}")

    return TokenResponse(access_token=access_token, user=_profile_response(profile))


@router.get("/me", response_model=UserProfileResponse)
def read_users_me(current_user: CurrentUser):
    """Get current user profile."""
    return _profile_response(current_user)


@router.patch(
    "/me",
    response_model=UserProfileResponse,
    responses={409: {"model": ErrorResponse, "description": "Username or email taken"}},
)
def update_users_me(
    body: ProfileUpdateRequest,
    current_user: CurrentUser,
    auth_gate: AuthGate = Depends(get_auth_gate),
):
    """Update the caller's contact details."""
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        return _profile_response(current_user)
    return _profile_response(auth_gate.update_profile(current_user.user_id, **changes))


@router.post(
    "/me/password",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"model": ErrorResponse, "description": "Current password is incorrect"}},
)
def change_password(
    body: PasswordChangeRequest,
    current_user: CurrentUser,
    auth_gate: AuthGate = Depends(get_auth_gate),
):
    auth_gate.change_password(current_user.user_id, body.current_password, body.new_password)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me/stats", response_model=ActivityStatsResponse)
def read_my_stats(
    current_user: CurrentUser,
    recorder=Depends(get_recorder),
):
    """Bookshelf and access request counters for the profile screen."""
    return recorder.activity_stats(current_user.user_id)


@router.get("/username-available", response_model=UsernameAvailabilityResponse)
def username_available(
    username: str = Query(..., min_length=1, max_length=255),
    auth_gate: AuthGate = Depends(get_auth_gate),
):
    return UsernameAvailabilityResponse(
        username=username,
        available=auth_gate.is_username_available(username),
    )
