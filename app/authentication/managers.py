"""
Custom user manager for email-based authentication.

This module provides the UserManager class that handles user creation
with email as the login identifier and a required display name.

Security:
    - Passwords are automatically hashed via set_password()
    - Email addresses are lowercased in full, not only the domain part
"""

from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    """
    Custom manager for User model with email-based authentication.

    Usage:
        user = User.objects.create_user(
            email='user@example.com',
            password='securepassword',
            display_name='alice',
        )

        admin = User.objects.create_superuser(
            email='admin@example.com',
            password='adminpassword',
            display_name='site-admin',
        )
    """

    def normalize_email(self, email):
        """Lowercase the whole address so uniqueness is case-insensitive."""
        return super().normalize_email(email).strip().lower()

    def create_user(self, email, password=None, display_name=None, **extra_fields):
        """
        Create and save a regular user.

        Args:
            email: User's email address (required)
            password: User's password (unusable password when omitted)
            display_name: Public name (defaults to the email local part)
            **extra_fields: Additional fields to set on the user

        Raises:
            ValueError: If email is not provided
        """
        if not email:
            raise ValueError("The Email field must be set")

        email = self.normalize_email(email)
        display_name = (display_name or email.split("@")[0]).strip()

        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)

        user = self.model(email=email, display_name=display_name, **extra_fields)

        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()

        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, display_name=None, **extra_fields):
        """
        Create and save a superuser.

        Raises:
            ValueError: If is_staff or is_superuser is not True
        """
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self.create_user(email, password, display_name, **extra_fields)
