"""
Exceptions for the PinVault engine
Every error the engine raises derives from PinVaultError so callers have one catch-all
"""


class PinVaultError(Exception):
    # general container for errors
    pass


class AuthenticationError(PinVaultError):
    # wrong PIN or tampered/corrupt envelope; the two cases are never told apart
    def __init__(self, message: str = "Wrong PIN or corrupted data"):
        super().__init__(message)


class StorageError(PinVaultError):
    # raised if the persistence backend fails to read or write
    pass


class NotFoundError(PinVaultError):
    # raised when a mutation targets an item id that is not in the vault
    pass


class ValidationError(PinVaultError, ValueError):
    # raised on bad input before any cryptographic work starts
    pass


class InvalidStateError(PinVaultError):
    # raised when a command is issued from a state where it is not valid
    pass


class EntropyUnavailableError(PinVaultError):
    # raised when the OS cannot supply secure random bytes
    pass
