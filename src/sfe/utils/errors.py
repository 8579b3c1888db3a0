class SfeError(Exception):
    pass


class CryptoFailure(SfeError):
    """Ciphertext could not be decrypted: bad framing or invalid padding."""


class MalformedEnvelope(SfeError, ValueError):
    """Magic header present but the metadata framing cannot be parsed."""


class PasswordRequired(SfeError):
    pass


class WrongPassword(SfeError):
    """Padding check failed while decrypting metadata or payload.

    The rejected password is kept on ``.password`` for diagnostics; it is
    never part of the message.
    """

    def __init__(self, message: str, password: str | None) -> None:
        super().__init__(message)
        self.password = password


class FileEncryptionFailure(SfeError):
    """A file operation failed; the low-level error is chained as ``__cause__``."""

    def __init__(self, message: str, cause: BaseException | None = None, path: str | None = None) -> None:
        super().__init__(message)
        self.cause = cause
        self.path = path
