"""
Authentication views.

This module provides API views for:
- Registration (returns a JWT pair so clients can connect immediately)
- Current user read/update/delete
- Public user lookup and search (used to pick chat participants)

Login, refresh and logout are simplejwt's own views, wired in urls.py.

Related files:
    - serializers.py: Request/response serialization
    - services.py: UserService business logic
    - urls.py: URL routing
"""

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.serializers import (
    PublicUserSerializer,
    RegisterSerializer,
    UserSearchSerializer,
    UserSerializer,
    UserUpdateSerializer,
)
from authentication.services import UserService


class RegisterView(APIView):
    """
    POST: Create an account and return it with an access/refresh pair.

    URL: /api/v1/auth/register/
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="Register",
        tags=["Auth"],
        request=RegisterSerializer,
        responses={201: UserSerializer},
    )
    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = UserService.register(**serializer.validated_data).unwrap()
        refresh = RefreshToken.for_user(user)

        return Response(
            {
                "user": UserSerializer(user).data,
                "access": str(refresh.access_token),
                "refresh": str(refresh),
            },
            status=status.HTTP_201_CREATED,
        )


class MeView(APIView):
    """
    API view for the current user's account.

    GET: Retrieve current user
    PUT/PATCH: Change email and/or display name
    DELETE: Delete the account

    URL: /api/v1/auth/me/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="Get current user", tags=["Auth"], responses={200: UserSerializer})
    def get(self, request):
        return Response(UserSerializer(request.user).data)

    @extend_schema(
        summary="Update current user",
        tags=["Auth"],
        request=UserUpdateSerializer,
        responses={200: UserSerializer},
    )
    def put(self, request):
        return self._update(request, partial=False)

    @extend_schema(
        summary="Partially update current user",
        tags=["Auth"],
        request=UserUpdateSerializer,
        responses={200: UserSerializer},
    )
    def patch(self, request):
        return self._update(request, partial=True)

    @extend_schema(summary="Delete current user", tags=["Auth"], responses={204: None})
    def delete(self, request):
        UserService.delete_user(request.user).unwrap()
        return Response(status=status.HTTP_204_NO_CONTENT)

    def _update(self, request, partial):
        serializer = UserUpdateSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        user = UserService.update_user(request.user, **serializer.validated_data).unwrap()
        return Response(UserSerializer(user).data)


class UserDetailView(APIView):
    """
    GET: Public view of another user.

    URL: /api/v1/auth/users/{user_id}/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="Get user", tags=["Users"], responses={200: PublicUserSerializer})
    def get(self, request, user_id):
        user = UserService.get_user(user_id).unwrap()
        return Response(PublicUserSerializer(user).data)


class UserSearchView(APIView):
    """
    GET: Search users by display name and/or email (case-insensitive substring).

    URL: /api/v1/auth/users/search/?display_name=ali&email=example.com
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Search users",
        tags=["Users"],
        parameters=[
            OpenApiParameter("display_name", str, required=False),
            OpenApiParameter("email", str, required=False),
        ],
        responses={200: PublicUserSerializer(many=True)},
    )
    def get(self, request):
        params = UserSearchSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        users = UserService.search_users(**params.validated_data).unwrap()
        return Response(PublicUserSerializer(users, many=True).data)
