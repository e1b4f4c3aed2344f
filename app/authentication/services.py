"""
Account services.

This module provides UserService: registration, lookup, owner-only profile
updates, deletion and search.

Related files:
    - models.py: User
    - serializers.py: Request validation and response shapes
    - views.py: HTTP endpoints (always pass request.user as the owner)

Security:
    - Passwords go through Django's password validators before hashing
    - Email and display name collisions are reported as CONFLICT, whether
      caught by the pre-check or by the database constraint in a race
"""

from __future__ import annotations

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError
from django.db.models import Q, QuerySet

from authentication.models import (
    User,
    validate_display_name_format,
    validate_display_name_not_reserved,
)
from core.services import BaseService, ErrorKind, ServiceResult

# Upper bound on search results returned in one response
SEARCH_RESULT_LIMIT = 50


class UserService(BaseService):
    """
    Centralized account business logic.

    Usage:
        from authentication.services import UserService

        result = UserService.register("a@example.com", "S3cure!pass", "alice")
        if result:
            user = result.data
    """

    @classmethod
    def register(
        cls,
        email: str,
        password: str,
        display_name: str,
    ) -> ServiceResult[User]:
        """
        Create a new account.

        Returns:
            ServiceResult with the user, or INVALID_ARGUMENT for bad input,
            or CONFLICT when the email or display name is taken.
        """
        email = (email or "").strip().lower()
        display_name = (display_name or "").strip()

        errors = cls._validate_display_name(display_name)
        if not email:
            errors.setdefault("email", []).append("This field is required.")
        try:
            validate_password(password, user=User(email=email, display_name=display_name))
        except DjangoValidationError as e:
            errors["password"] = list(e.messages)
        if errors:
            return ServiceResult.failure(
                "Registration data is invalid",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )

        conflict = cls._find_conflict(email, display_name)
        if conflict:
            return conflict

        try:
            with cls.atomic():
                user = User.objects.create_user(
                    email=email, password=password, display_name=display_name
                )
        except IntegrityError:
            return ServiceResult.failure(
                "Email or display name already in use",
                error_code="USER_EXISTS",
                kind=ErrorKind.CONFLICT,
            )
        except DatabaseError as exc:
            return cls.handle_exception(exc, "register")

        cls.get_logger().info(f"Registered user {user.id}")
        return ServiceResult.success(user)

    @staticmethod
    def get_user(user_id) -> ServiceResult[User]:
        """Return an active user by id, or NOT_FOUND."""
        user = User.objects.filter(pk=user_id, is_active=True).first()
        if user is None:
            return ServiceResult.failure(
                f"User {user_id} not found",
                error_code="USER_NOT_FOUND",
                kind=ErrorKind.NOT_FOUND,
            )
        return ServiceResult.success(user)

    @classmethod
    def update_user(
        cls,
        user: User,
        email: str | None = None,
        display_name: str | None = None,
    ) -> ServiceResult[User]:
        """
        Change the owner's email and/or display name.

        The caller is the owner by construction: views only ever pass
        request.user. Fields left as None are unchanged.
        """
        errors: dict[str, list[str]] = {}
        if display_name is not None:
            display_name = display_name.strip()
            errors.update(cls._validate_display_name(display_name))
        if email is not None:
            email = email.strip().lower()
            if not email:
                errors["email"] = ["This field may not be blank."]
        if errors:
            return ServiceResult.failure(
                "Profile data is invalid",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )

        conflict = cls._find_conflict(email, display_name, exclude_id=user.id)
        if conflict:
            return conflict

        update_fields = ["updated_at"]
        if email is not None:
            user.email = email
            update_fields.append("email")
        if display_name is not None:
            user.display_name = display_name
            update_fields.append("display_name")

        try:
            with cls.atomic():
                user.save(update_fields=update_fields)
        except IntegrityError:
            user.refresh_from_db()
            return ServiceResult.failure(
                "Email or display name already in use",
                error_code="USER_EXISTS",
                kind=ErrorKind.CONFLICT,
            )
        except DatabaseError as exc:
            return cls.handle_exception(exc, "update_user")

        cls.get_logger().info(f"Updated user {user.id}: {update_fields[1:]}")
        return ServiceResult.success(user)

    @classmethod
    def delete_user(cls, user: User) -> ServiceResult[None]:
        """
        Delete the owner's account.

        Messages the user sent stay in their chats with no sender; their
        participant rows are removed with the account. SINGLE chats, and
        groups the user was alone in, are deleted by chat.signals.
        """
        user_id = user.id
        try:
            with cls.atomic():
                user.delete()
        except DatabaseError as exc:
            return cls.handle_exception(exc, "delete_user")

        cls.get_logger().info(f"Deleted user {user_id}")
        return ServiceResult.success(None)

    @staticmethod
    def search_users(
        display_name: str | None = None,
        email: str | None = None,
    ) -> ServiceResult[QuerySet[User]]:
        """
        Case-insensitive substring search over display name and/or email.

        Both terms are optional but at least one must be non-blank.
        """
        display_name = (display_name or "").strip()
        email = (email or "").strip()
        if not display_name and not email:
            return ServiceResult.failure(
                "Provide a display name or email to search for",
                error_code="EMPTY_SEARCH",
            )

        query = Q()
        if display_name:
            query |= Q(display_name__icontains=display_name)
        if email:
            query |= Q(email__icontains=email)

        users = User.objects.filter(query, is_active=True).order_by("display_name")
        return ServiceResult.success(users[:SEARCH_RESULT_LIMIT])

    @staticmethod
    def _validate_display_name(display_name: str) -> dict[str, list[str]]:
        errors = []
        for validator in (validate_display_name_format, validate_display_name_not_reserved):
            try:
                validator(display_name)
            except DjangoValidationError as e:
                errors.extend(e.messages)
        return {"display_name": errors} if errors else {}

    @staticmethod
    def _find_conflict(
        email: str | None,
        display_name: str | None,
        exclude_id: int | None = None,
    ) -> ServiceResult | None:
        others = User.objects.exclude(pk=exclude_id) if exclude_id else User.objects.all()
        if email and others.filter(email__iexact=email).exists():
            return ServiceResult.failure(
                "Email already registered",
                error_code="EMAIL_EXISTS",
                kind=ErrorKind.CONFLICT,
            )
        if display_name and others.filter(display_name__iexact=display_name).exists():
            return ServiceResult.failure(
                "Display name already taken",
                error_code="DISPLAY_NAME_EXISTS",
                kind=ErrorKind.CONFLICT,
            )
        return None
