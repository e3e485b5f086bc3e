import re

from rest_framework import serializers

from content.models import ContentEntry

MAX_UPDATES_PER_REQUEST = 500

# Would be shadowed by the /api/content/entries/ route.
RESERVED_SECTIONS = frozenset({"entries"})

PASSWORD_MIN_LENGTH = 8
_SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")


class ContentEntrySerializer(serializers.ModelSerializer):
    """A stored content entry with its last-write timestamp."""

    class Meta:
        model = ContentEntry
        fields = ["id", "section", "key", "value", "updated_at"]
        read_only_fields = fields


class ContentItemSerializer(serializers.Serializer):
    """One (section, key, value) write inside an update request."""

    section = serializers.CharField(max_length=100)
    key = serializers.CharField(max_length=255)
    value = serializers.CharField(
        allow_blank=True,
        trim_whitespace=False,
        help_text="Display text to store. Can be empty string.",
    )

    def validate_section(self, value):
        if value in RESERVED_SECTIONS:
            raise serializers.ValidationError(f"\"{value}\" is reserved and cannot be used as a section.")
        return value


class ContentUpdateSerializer(serializers.Serializer):
    """
    Envelope for a batch of content writes.

    Items are validated one by one in the view so a bad item is reported on
    its own instead of rejecting the whole batch.
    """

    updates = serializers.ListField(
        child=serializers.DictField(),
        help_text="List of {section, key, value} writes",
    )

    def validate_updates(self, updates):
        if not updates:
            raise serializers.ValidationError("At least one update is required")
        if len(updates) > MAX_UPDATES_PER_REQUEST:
            raise serializers.ValidationError(
                f"Batch size {len(updates)} exceeds maximum of {MAX_UPDATES_PER_REQUEST} updates"
            )
        return updates


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    password = serializers.CharField(trim_whitespace=False, style={"input_type": "password"})


def validate_password_strength(password: str) -> str:
    """At least 8 characters mixing upper and lower case, a digit and a special character."""
    if len(password) < PASSWORD_MIN_LENGTH:
        raise serializers.ValidationError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
        )
    if not (re.search(r"[A-Z]", password) and re.search(r"[a-z]", password)):
        raise serializers.ValidationError(
            "Password must contain both uppercase and lowercase letters"
        )
    if not re.search(r"\d", password):
        raise serializers.ValidationError("Password must contain at least one number")
    if not _SPECIAL_CHARACTERS.search(password):
        raise serializers.ValidationError(
            "Password must contain at least one special character"
        )
    return password


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(trim_whitespace=False)
    new_password = serializers.CharField(
        trim_whitespace=False,
        validators=[validate_password_strength],
    )

    def validate(self, attrs):
        if attrs["current_password"] == attrs["new_password"]:
            raise serializers.ValidationError(
                {"new_password": "New password must differ from the current password"}
            )
        return attrs


class ContactSerializer(serializers.Serializer):
    """Enquiry submitted from the site's contact form."""

    name = serializers.CharField(max_length=100)
    email = serializers.EmailField()
    company = serializers.CharField(max_length=100, required=False, allow_blank=True)
    subject = serializers.CharField(max_length=200, required=False, allow_blank=True)
    message = serializers.CharField(max_length=5000)
