class DigestHeaderError(Exception):
    """Base class for all errors raised while creating or verifying a `Content-Digest` header."""

    pass


class AlreadyPresentError(DigestHeaderError, ValueError):
    """Exception raised when a `Content-Digest` header should be added to a message that already has one."""

    pass


class UnsupportedAlgorithmError(DigestHeaderError, ValueError):
    """Exception raised when an algorithm identifier or wire label is not SHA-256 or SHA-512."""

    pass


class MissingHeaderError(DigestHeaderError, ValueError):
    """Exception raised when a message to verify carries no (or an empty) `Content-Digest` header."""

    pass


class MalformedHeaderError(DigestHeaderError, ValueError):
    """Exception raised when a `Content-Digest` header is malformed."""

    pass


class DigestMismatchError(DigestHeaderError, ValueError):
    """Exception raised when the digest of the payload does not match the digest declared in the header."""

    pass


class ReadError(DigestHeaderError, OSError):
    """Exception raised when the payload stream could not be read to completion."""

    pass
