"""Common utility functions."""
from uuid import UUID


def is_valid_uuid(uuid_string: str) -> bool:
    """Check if string is valid UUID."""
    try:
        UUID(uuid_string)
        return True
    except (ValueError, TypeError, AttributeError):
        return False
