import re

from arcade_index.errors import InvalidInputError

MAX_IDENTITY_LENGTH = 128

_IDENTITY_PATTERN = re.compile(r"^[a-z0-9_.:\-]+$")


def normalize_identity(raw) -> str:
    """
    Return the canonical identity key for a wallet/account identifier.

    Keys are compared case-insensitively, so the canonical form is the
    trimmed, lower-cased identifier.

    Raises:
        InvalidInputError: if the identifier is empty, too long or
            contains characters outside ``[a-z0-9_.:-]``.
    """
    if not isinstance(raw, str):
        raise InvalidInputError("Identity must be a string")

    key = raw.strip().lower()
    if not key:
        raise InvalidInputError("Identity must not be empty")
    if len(key) > MAX_IDENTITY_LENGTH:
        raise InvalidInputError(f"Identity must be at most {MAX_IDENTITY_LENGTH} characters")
    if not _IDENTITY_PATTERN.match(key):
        raise InvalidInputError("Identity may only contain letters, digits, '_', '.', ':' and '-'")
    return key
