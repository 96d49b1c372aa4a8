"""Error kinds raised by the vault core.

Every failure is a TeleError subclass so the CLI can turn it into an exit
status in one place.
"""

from typing import Optional


class TeleError(Exception):
    """Base class for all tele errors."""


class NotInitializedError(TeleError):
    def __init__(self, message: str = "Not initialized. Run 'tele init' first."):
        super().__init__(message)


class AlreadyInitializedError(TeleError):
    def __init__(
        self,
        message: str = "Master password already configured. Delete master.json to reinitialize.",
    ):
        super().__init__(message)


class AuthenticationError(TeleError):
    """Wrong master password or a record that fails authentication."""


class WrongPasswordError(AuthenticationError):
    def __init__(self, message: str = "Incorrect master password."):
        super().__init__(message)


class DecryptionError(AuthenticationError):
    """AES-GCM tag did not verify (wrong key, corruption or tampering)."""

    def __init__(self, message: str = "Decryption failed: wrong password or corrupted record."):
        super().__init__(message)


class DuplicateNameError(TeleError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Destination {name!r} already exists.")


class NotFoundError(TeleError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Destination {name!r} not found.")


class InvalidNameError(TeleError):
    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid destination name {name!r}: {reason}")


class CorruptRecordError(TeleError):
    """A persisted record could not be decoded.

    Attributes:
        name: Record name ("master" for master.json)
        field: Offending field, or None when the whole document is unreadable

    """

    def __init__(self, name: str, field: Optional[str], detail: str):
        self.name = name
        self.field = field
        self.detail = detail
        where = f"{name}.{field}" if field else name
        super().__init__(f"Corrupt record {where}: {detail}")


class EntropyUnavailableError(TeleError):
    def __init__(self, detail: str):
        super().__init__(f"Random number generator unavailable: {detail}")


class KeyDerivationError(TeleError):
    def __init__(self, detail: str):
        super().__init__(f"Key derivation failed: {detail}")


class LauncherError(TeleError):
    """sshpass could not be located, built or executed."""
