"""
Serializers for authentication models.

This module provides DRF serializers for:
- User model (public and private read shapes)
- Registration (request validation)
- Owner profile updates

Business rules (uniqueness, reserved names, password strength) are enforced
in UserService; these serializers only check shape and types.

Security:
    - Password fields are write-only
    - Email is only exposed to its owner (UserSerializer); other users see
      PublicUserSerializer
"""

from rest_framework import serializers

from authentication.models import User


class PublicUserSerializer(serializers.ModelSerializer):
    """User as seen by other people: chat participants, search results."""

    class Meta:
        model = User
        fields = ["id", "display_name"]
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for the current user (read operations).

    Used by /api/v1/auth/me/ and the registration response.
    """

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "display_name",
            "date_joined",
            "updated_at",
        ]
        read_only_fields = fields


class RegisterSerializer(serializers.Serializer):
    """Request body for /api/v1/auth/register/."""

    email = serializers.EmailField()
    display_name = serializers.CharField(max_length=50)
    password = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
        help_text="Must pass the configured password validators.",
    )


class UserUpdateSerializer(serializers.Serializer):
    """Request body for PUT/PATCH /api/v1/auth/me/."""

    email = serializers.EmailField(required=False)
    display_name = serializers.CharField(max_length=50, required=False)

    def validate(self, attrs):
        """Require both fields on PUT; at least one on PATCH."""
        if not self.partial and set(attrs) != {"email", "display_name"}:
            raise serializers.ValidationError(
                "PUT requires both email and display_name; use PATCH for one field."
            )
        if not attrs:
            raise serializers.ValidationError("Nothing to update.")
        return attrs


class UserSearchSerializer(serializers.Serializer):
    """Query parameters for /api/v1/auth/users/search/."""

    display_name = serializers.CharField(required=False, allow_blank=True)
    email = serializers.CharField(required=False, allow_blank=True)
