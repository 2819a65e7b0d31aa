"""
Auth API endpoints.

Handles password authentication and the account surface:
- Registration and email verification
- Login/logout with server-side sessions
- Password reset and change
- Profile and session management
"""

from uuid import UUID

from django.conf import settings
from django.http import HttpRequest, HttpResponse
from ninja import Router

from apps.accounts.models import User
from apps.accounts.passwords import get_password_service
from apps.accounts.registration import get_registration_service
from apps.accounts.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    ResetPasswordRequest,
    RevokedSessionsResponse,
    SessionInfo,
    SessionListResponse,
    TokenRequest,
    UpdateProfileRequest,
    UserInfo,
)
from apps.accounts.services import get_auth_service
from apps.core.context import RequestContext
from apps.core.schemas import ErrorResponse, MessageResponse
from apps.core.security import SessionAuth
from apps.core.types import AuthenticatedHttpRequest
from apps.rbac.services import UNSET

router = Router(tags=["auth"])
session_auth = SessionAuth()


def _user_info(user: User) -> UserInfo:
    profile = getattr(user, "profile", None)
    return UserInfo(
        id=user.id,
        email=user.email,
        profile={
            "first_name": profile.first_name if profile else "",
            "last_name": profile.last_name if profile else "",
            "phone": profile.phone if profile else None,
        },
        organization={
            "id": user.organization.id,
            "name": user.organization.name,
            "slug": user.organization.slug,
        },
        role={"id": user.role.id, "name": user.role.name},
    )


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "samesite": "Lax",
        "secure": settings.AUTH_SESSION_COOKIE_SECURE,
        "path": "/",
    }


# --- Registration ---


@router.post(
    "/register",
    response={201: MessageResponse, 400: ErrorResponse, 409: ErrorResponse},
    operation_id="register",
    summary="Register a new organization and admin user",
)
def register(request: HttpRequest, payload: RegisterRequest) -> tuple[int, MessageResponse]:
    """
    Create the organization, its Admin role and the first user.

    The user must verify their email before logging in.
    """
    get_registration_service().register(
        organization_name=payload.organization.name,
        slug=payload.organization.slug,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        ctx=RequestContext.from_request(request),
    )
    return 201, MessageResponse(
        message="Registration successful. Please check your email to verify your account."
    )


@router.post(
    "/verify-email",
    response={200: MessageResponse, 401: ErrorResponse},
    operation_id="verifyEmail",
    summary="Verify email address",
)
def verify_email(request: HttpRequest, payload: TokenRequest) -> MessageResponse:
    get_registration_service().verify_email(payload.token, RequestContext.from_request(request))
    return MessageResponse(message="Email verified successfully. You can now log in.")


@router.post(
    "/resend-verification",
    response={200: MessageResponse, 400: ErrorResponse},
    operation_id="resendVerification",
    summary="Resend the verification email",
)
def resend_verification(request: HttpRequest, payload: EmailRequest) -> MessageResponse:
    message = get_registration_service().resend_verification(
        payload.email, RequestContext.from_request(request)
    )
    return MessageResponse(message=message)


# --- Login / Logout ---


@router.post(
    "/login",
    response={200: LoginResponse, 400: ErrorResponse, 401: ErrorResponse, 403: ErrorResponse},
    operation_id="login",
    summary="Log in with email and password",
)
def login(request: HttpRequest, response: HttpResponse, payload: LoginRequest) -> LoginResponse:
    """
    Open a session.

    The session secret is set as an httpOnly cookie and also returned once in
    the body for clients that send it as a Bearer token.
    """
    result = get_auth_service().login(
        payload.email,
        payload.password,
        RequestContext.from_request(request),
        remember_me=payload.remember_me,
    )

    response.set_cookie(
        settings.AUTH_SESSION_COOKIE_NAME,
        result.session_secret,
        max_age=result.max_age_seconds,
        **_cookie_options(),
    )

    return LoginResponse(
        user=_user_info(result.user),
        permissions=sorted(result.permissions),
        session_token=result.session_secret,
        expires_in=result.max_age_seconds,
    )


@router.post(
    "/logout",
    response={204: None, 401: ErrorResponse},
    auth=session_auth,
    operation_id="logout",
    summary="End the current session",
)
def logout(request: AuthenticatedHttpRequest, response: HttpResponse):
    get_auth_service().logout(request.auth, RequestContext.from_request(request))
    options = _cookie_options()
    response.delete_cookie(
        settings.AUTH_SESSION_COOKIE_NAME,
        path=options["path"],
        samesite=options["samesite"],
    )
    return 204, None


# --- Current user ---


@router.get(
    "/me",
    response={200: AuthResponse, 401: ErrorResponse},
    auth=session_auth,
    operation_id="getCurrentUser",
    summary="Get current user info",
)
def get_current_user(request: AuthenticatedHttpRequest) -> AuthResponse:
    user, permissions = get_auth_service().me(request.auth)
    return AuthResponse(user=_user_info(user), permissions=sorted(permissions))


@router.patch(
    "/me",
    response={200: UserInfo, 400: ErrorResponse, 401: ErrorResponse},
    auth=session_auth,
    operation_id="updateProfile",
    summary="Update user profile",
)
def update_profile(request: AuthenticatedHttpRequest, payload: UpdateProfileRequest) -> UserInfo:
    """Only fields present in the request body are changed; `phone: null` clears it."""
    provided = payload.model_fields_set
    user = get_auth_service().update_profile(
        request.auth,
        RequestContext.from_request(request),
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone if "phone" in provided else UNSET,
    )
    return _user_info(user)


# --- Passwords ---


@router.post(
    "/forgot-password",
    response={200: MessageResponse, 400: ErrorResponse},
    operation_id="forgotPassword",
    summary="Request a password reset email",
)
def forgot_password(request: HttpRequest, payload: EmailRequest) -> MessageResponse:
    message = get_password_service().forgot_password(
        payload.email, RequestContext.from_request(request)
    )
    return MessageResponse(message=message)


@router.post(
    "/reset-password",
    response={200: MessageResponse, 400: ErrorResponse, 401: ErrorResponse},
    operation_id="resetPassword",
    summary="Set a new password with a reset token",
)
def reset_password(request: HttpRequest, payload: ResetPasswordRequest) -> MessageResponse:
    get_password_service().reset_password(
        payload.token, payload.password, RequestContext.from_request(request)
    )
    return MessageResponse(message="Password has been reset successfully")


@router.post(
    "/change-password",
    response={200: MessageResponse, 400: ErrorResponse, 401: ErrorResponse},
    auth=session_auth,
    operation_id="changePassword",
    summary="Change password and sign out other sessions",
)
def change_password(
    request: AuthenticatedHttpRequest, payload: ChangePasswordRequest
) -> MessageResponse:
    get_password_service().change_password(
        request.auth,
        payload.current_password,
        payload.new_password,
        RequestContext.from_request(request),
    )
    return MessageResponse(message="Password changed successfully")


# --- Sessions ---


@router.get(
    "/sessions",
    response={200: SessionListResponse, 401: ErrorResponse},
    auth=session_auth,
    operation_id="listSessions",
    summary="List active sessions",
)
def list_sessions(request: AuthenticatedHttpRequest) -> SessionListResponse:
    items = get_auth_service().list_sessions(request.auth)
    return SessionListResponse(
        sessions=[
            SessionInfo(
                id=item.session.id,
                ip_address=item.session.ip_address,
                user_agent=item.session.user_agent,
                created_at=item.session.created_at,
                last_accessed_at=item.session.last_accessed_at,
                expires_at=item.session.expires_at,
                is_current=item.is_current,
            )
            for item in items
        ]
    )


@router.delete(
    "/sessions/{session_id}",
    response={204: None, 401: ErrorResponse, 404: ErrorResponse},
    auth=session_auth,
    operation_id="revokeSession",
    summary="Revoke another session",
)
def revoke_session(request: AuthenticatedHttpRequest, session_id: UUID):
    get_auth_service().revoke_session(
        request.auth, session_id, RequestContext.from_request(request)
    )
    return 204, None


@router.delete(
    "/sessions",
    response={200: RevokedSessionsResponse, 401: ErrorResponse},
    auth=session_auth,
    operation_id="revokeOtherSessions",
    summary="Revoke all sessions except the current one",
)
def revoke_other_sessions(request: AuthenticatedHttpRequest) -> RevokedSessionsResponse:
    count = get_auth_service().revoke_other_sessions(
        request.auth, RequestContext.from_request(request)
    )
    return RevokedSessionsResponse(revoked_count=count)
