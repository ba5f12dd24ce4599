"""Functional interface for RFC 9530 Content-Digest headers."""

from .rfc9530 import (
    DigestHeaderAlgorithm,
    HeaderShouldBeAdded,
    Message,
    Payload,
)


def create_digest(
    instance: bytes,
    algorithm: DigestHeaderAlgorithm | str = "SHA-256",
    padded: bool = True,
) -> HeaderShouldBeAdded:
    """Create a `Content-Digest` header for the given instance bytes, as per RFC 9530.

    This function does not touch any message; use `add_digest` to attach the header directly.

    Args:
        instance: The bytes to compute the digest for (e.g., the request body).
        algorithm: "SHA-256" (default) or "SHA-512".
        padded: Whether the URL-safe base64 digest keeps its trailing `=` characters.

    Returns:
        HeaderShouldBeAdded: An object containing the header name ("Content-Digest") and its value.

    Usage:
        Client: header = create_digest(body)

    Raises:
        UnsupportedAlgorithmError: If the algorithm is neither SHA-256 nor SHA-512.

    """
    return DigestHeaderAlgorithm.make_digest_header(instance, algorithm, padded)


def add_digest(
    message: Message,
    algorithm: DigestHeaderAlgorithm | str,
    instance: bytes,
    padded: bool = True,
) -> HeaderShouldBeAdded:
    """Add a `Content-Digest` header for the given instance bytes to a message.

    Args:
        message: The message headers as a mutable mapping, or an object with a `headers` mapping
            (e.g. a prepared request). Header names are matched case-insensitively.
        algorithm: "SHA-256" or "SHA-512".
        instance: The bytes to compute the digest for (e.g., the request body).
        padded: Whether the URL-safe base64 digest keeps its trailing `=` characters.

    Returns:
        HeaderShouldBeAdded: The header that was added.

    Usage:
        Client: add_digest(request.headers, "SHA-512", body)

    Raises:
        AlreadyPresentError: If the message already has a `Content-Digest` header. It is left untouched.
        UnsupportedAlgorithmError: If the algorithm is neither SHA-256 nor SHA-512.

    """
    return DigestHeaderAlgorithm.add_digest_header(message, algorithm, instance, padded)


def verify_digest(
    message: Message,
    payload: Payload,
    padded: bool = True,
) -> DigestHeaderAlgorithm:
    """Verify the `Content-Digest` header of a message against its payload, as per RFC 9530.

    This function is used by servers to verify an incoming request body. Digests are accepted
    with or without base64 padding, independent of `padded`.

    Args:
        message: The message headers as a mapping, or an object with a `headers` mapping.
        payload: A readable binary stream, drained to completion, or the payload bytes.
        padded: The padding preference of this side. It does not restrict what is accepted.

    Returns:
        DigestHeaderAlgorithm: The algorithm the payload was verified with.

    Usage:
        Server: verify_digest(request.headers, request.stream)

    Raises:
        MissingHeaderError: If the message has no `Content-Digest` header.
        MalformedHeaderError: If the `Content-Digest` header is malformed.
        UnsupportedAlgorithmError: If the header uses an algorithm other than sha-256 or sha-512.
        ReadError: If the payload stream can not be read.
        DigestMismatchError: If the payload does not match the declared digest.

    """
    return DigestHeaderAlgorithm.verify_request(message, payload, padded)
