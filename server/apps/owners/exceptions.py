"""Exceptions for owners app."""

from django.core.exceptions import ValidationError


class DuplicateKeyError(ValidationError):
    """Raised when an external key is already taken by another entry.

    It is a field-level validation error, so callers that render
    ``error_dict`` show it next to the offending field.
    """

    def __init__(self, field_name: str, key: str) -> None:
        """Initialize DuplicateKeyError.

        Args:
            field_name: Name of the external key field.
            key: The rejected external key.
        """
        self.field_name = field_name
        self.key = key
        super().__init__({
            field_name: ValidationError(
                'Entry with %(key)s already exists.',
                code='duplicate_key',
                params={'key': key},
            ),
        })
