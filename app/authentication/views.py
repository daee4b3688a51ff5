"""
Authentication views.

This module provides API views for:
- Registration, JWT token issuance, refresh and logout
  (djangorestframework-simplejwt, refresh tokens blacklisted on logout)
- Profile management, including privacy preferences
- The user directory, with presence filtered by each user's policy

Related files:
    - serializers.py: Request/response serialization
    - services.py: Business logic (AuthService)
    - urls.py: URL routing

Note:
    The access token issued here is the same credential the WebSocket
    middleware verifies (chat/middleware.py).
"""

import logging

from asgiref.sync import async_to_sync
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from authentication.models import User
from authentication.serializers import (
    DirectoryUserSerializer,
    LogoutSerializer,
    ProfileSerializer,
    ProfileUpdateSerializer,
    RegisterSerializer,
)
from authentication.services import AuthService
from chat.realtime.hub import get_hub
from chat.views import error_response
from core.exceptions import BaseApplicationError, NotFoundError

logger = logging.getLogger(__name__)


# =============================================================================
# Token Views
# =============================================================================


@extend_schema(
    summary="Obtain token pair",
    description="Exchange email and password for an access and refresh token.",
    tags=["Auth"],
)
class TokenObtainView(TokenObtainPairView):
    """
    POST: Authenticate with email and password.

    URL: /api/v1/auth/token/

    Returns:
        {"access": "...", "refresh": "..."}
    """


@extend_schema(
    summary="Refresh access token",
    tags=["Auth"],
)
class TokenRefreshAccessView(TokenRefreshView):
    """
    POST: Exchange a refresh token for a new access token.

    URL: /api/v1/auth/token/refresh/
    """


# =============================================================================
# Profile Views
# =============================================================================


class ProfileView(APIView):
    """
    API view for the current user's profile.

    GET: Retrieve profile, presence snapshot and privacy settings
    PATCH: Update display fields and privacy preferences

    URL: /api/v1/auth/profile/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get current user's profile",
        tags=["Auth - Profile"],
        responses={200: ProfileSerializer},
    )
    def get(self, request):
        """Retrieve the current user's profile."""
        profile = AuthService.get_or_create_profile(request.user)
        serializer = ProfileSerializer(profile, context={"request": request})
        return Response(serializer.data)

    @extend_schema(
        summary="Partially update profile",
        description=(
            "Update display fields and privacy preferences "
            "(last_seen_visibility, read_receipts_enabled)."
        ),
        tags=["Auth - Profile"],
        request=ProfileUpdateSerializer,
        responses={200: ProfileSerializer},
    )
    def patch(self, request):
        """
        Partially update the current user's profile.

        Request body:
            Any subset of: username, first_name, last_name, bio, avatar_url,
            last_seen_visibility, read_receipts_enabled
        """
        profile = AuthService.get_or_create_profile(request.user)
        serializer = ProfileUpdateSerializer(
            profile,
            data=request.data,
            partial=True,
            context={"request": request, "user": request.user},
        )
        serializer.is_valid(raise_exception=True)
        updated_profile = serializer.save()

        return Response(
            ProfileSerializer(updated_profile, context={"request": request}).data
        )


# =============================================================================
# Registration and Logout Views
# =============================================================================


class RegisterView(APIView):
    """
    Create an account and sign it in.

    POST /api/v1/auth/register/
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="Register",
        description="Create an account with email and password and return a token pair.",
        tags=["Auth"],
        request=RegisterSerializer,
        responses={201: ProfileSerializer},
    )
    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        refresh = RefreshToken.for_user(user)
        profile = AuthService.get_or_create_profile(user)
        return Response(
            {
                "user": ProfileSerializer(profile, context={"request": request}).data,
                "access": str(refresh.access_token),
                "refresh": str(refresh),
            },
            status=status.HTTP_201_CREATED,
        )


class LogoutView(APIView):
    """
    Revoke a refresh token.

    POST /api/v1/auth/logout/

    The access token stays valid until it expires; open sockets are
    closed by the client.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Logout",
        tags=["Auth"],
        request=LogoutSerializer,
        responses={
            205: OpenApiResponse(description="Refresh token revoked"),
            400: OpenApiResponse(description="Invalid or already revoked token"),
        },
    )
    def post(self, request):
        serializer = LogoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            token = RefreshToken(serializer.validated_data["refresh"])
            if str(token.get("user_id")) != str(request.user.pk):
                raise TokenError("Token belongs to another user")
            token.blacklist()
        except TokenError as e:
            return Response(
                {"error": str(e), "error_code": "INVALID_TOKEN"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        logger.info(f"User {request.user.pk} logged out")
        return Response(status=status.HTTP_205_RESET_CONTENT)


# =============================================================================
# User Directory Views
# =============================================================================


def directory_response(request, users, many: bool) -> Response:
    """Serialize users with presence filtered for the requester."""
    subjects = list(users) if many else [users]
    try:
        presence = async_to_sync(get_hub().presence.get_presence_many)(
            request.user.pk, [user.pk for user in subjects]
        )
    except BaseApplicationError as e:
        return error_response(e)

    serializer = DirectoryUserSerializer(
        subjects if many else users, many=many, context={"presence": presence}
    )
    return Response(serializer.data)


class UserListView(APIView):
    """
    Every other active user, with presence where the requester may see it.

    GET /api/v1/auth/users/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List users",
        tags=["Auth - Users"],
        responses={200: DirectoryUserSerializer(many=True)},
    )
    def get(self, request):
        users = (
            User.objects.filter(is_active=True)
            .exclude(pk=request.user.pk)
            .select_related("profile")
            .order_by("id")
        )
        return directory_response(request, users, many=True)


class UserDetailView(APIView):
    """
    One active user, with presence where the requester may see it.

    GET /api/v1/auth/users/{user_id}/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get user",
        tags=["Auth - Users"],
        responses={
            200: DirectoryUserSerializer,
            404: OpenApiResponse(description="User not found"),
        },
    )
    def get(self, request, user_id):
        user = (
            User.objects.filter(pk=user_id, is_active=True)
            .select_related("profile")
            .first()
        )
        if user is None:
            return error_response(
                NotFoundError("User not found", error_code="USER_NOT_FOUND")
            )
        return directory_response(request, user, many=False)
