"""
Authentication models.

This module defines the account model for the chat backend:
- User: Custom user model with email login and a unique public display name

Related files:
    - managers.py: Custom user manager for email-based creation
    - services.py: UserService business logic
    - authenticators.py: Token validation for HTTP and WebSocket handshakes

Security:
    - User passwords hashed with Django's PBKDF2
    - Email and display name uniqueness enforced case-insensitively at database level
"""

import re

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models.functions import Lower

from authentication.managers import UserManager


# Display names that cannot be claimed
RESERVED_DISPLAY_NAMES = frozenset([
    "admin", "administrator", "root", "system", "api", "support",
    "help", "security", "moderator", "mod", "staff", "official",
    "null", "undefined", "anonymous", "guest", "bot", "chat",
])

DISPLAY_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]{3,50}$")


def validate_display_name_not_reserved(value):
    """Validate that display name is not in the reserved list."""
    if value.lower() in RESERVED_DISPLAY_NAMES:
        raise ValidationError(
            f"The display name '{value}' is reserved and cannot be used."
        )


def validate_display_name_format(value):
    """Validate display name format: 3-50 chars, letters, digits, _ - and ."""
    if not DISPLAY_NAME_PATTERN.match(value):
        raise ValidationError(
            "Display name must be 3-50 characters and contain only "
            "letters, numbers, underscores, hyphens, and dots."
        )


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the login identifier.

    The numeric primary key is the stable identity chats and messages refer
    to. Email and display name may change (owner only); the id never does.

    Fields:
        email: Login identifier, unique
        display_name: Public name shown in chats, unique
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        user = User.objects.create_user(
            email='user@example.com',
            password='securepassword',
            display_name='alice',
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (login identifier)",
    )

    display_name = models.CharField(
        max_length=50,
        unique=True,
        validators=[validate_display_name_format, validate_display_name_not_reserved],
        help_text="Public name shown to other chat participants",
    )

    # Account status flags
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    # Timestamps
    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"

    # Prompted by createsuperuser in addition to email and password
    REQUIRED_FIELDS = ["display_name"]

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]
        constraints = [
            models.UniqueConstraint(
                Lower("email"),
                name="unique_user_email_ci",
            ),
            models.UniqueConstraint(
                Lower("display_name"),
                name="unique_user_display_name_ci",
            ),
        ]

    def __str__(self):
        return self.display_name or self.email

    def get_full_name(self):
        return self.display_name

    def get_short_name(self):
        return self.display_name
