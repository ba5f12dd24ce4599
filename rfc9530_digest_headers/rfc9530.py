"""`Content-Digest` headers as per RFC 9530.

A header value carries exactly one digest as a structured-field byte sequence:

    sha-256=:RYiuVuVdRpU-BWcNUUg3sf0EbJjQ9LDj9tUqR546hhk=:

The digest is encoded with the URL-safe base64 alphabet. Whether the encoder emits the `=` padding
is configurable; the decoder accepts both forms.
"""

import base64
import binascii
import hashlib
import hmac
import re
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, BinaryIO, Protocol, cast

import structlog

from .exceptions import (
    AlreadyPresentError,
    DigestMismatchError,
    MalformedHeaderError,
    MissingHeaderError,
    ReadError,
    UnsupportedAlgorithmError,
)

logger = structlog.get_logger(__name__)

CONTENT_DIGEST_HEADER = "Content-Digest"

# sf-key (RFC 8941 3.2) shape; uppercase labels parse but match no algorithm.
_LABEL_PATTERN = re.compile(r"[A-Za-z*][A-Za-z0-9_.*-]*")
# RFC 4648 section 5 alphabet, at most two trailing pad characters.
_DIGEST_PATTERN = re.compile(r"[A-Za-z0-9_-]+={0,2}")


class _HasHeaders(Protocol):
    headers: Mapping[str, str]


Message = Mapping[str, str] | _HasHeaders
Payload = BinaryIO | bytes | bytearray | memoryview


@dataclass(frozen=True)
class HeaderShouldBeAdded:
    """A header the caller should add to its message."""

    header_name: str
    header_value: str


class DigestHeaderAlgorithm(Enum):
    """Digest algorithms usable in a `Content-Digest` header.

    The member value is the identifier used by the API (`"SHA-256"`), `label` is the lowercase
    name used on the wire (`"sha-256"`).
    """

    SHA256 = "SHA-256"
    SHA512 = "SHA-512"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def hash_function(self) -> Callable[..., Any]:
        return _HASH_FUNCTIONS[self]

    @property
    def digest_size(self) -> int:
        return self.hash_function().digest_size

    def compute(self, instance: bytes) -> bytes:
        """Compute the raw digest of `instance`."""
        return self.hash_function(instance).digest()

    def encode(self, instance: bytes, padded: bool = True) -> str:
        """Compute the digest of `instance` and encode it as URL-safe base64, with or without `=` padding."""
        encoded = base64.urlsafe_b64encode(self.compute(instance)).decode("ascii")
        if not padded:
            encoded = encoded.rstrip("=")
        return encoded

    @classmethod
    def resolve(
        cls, algorithm: "DigestHeaderAlgorithm | str"
    ) -> tuple[Callable[..., Any], str]:
        """Look up the hash function and wire label of an algorithm identifier.

        Raises:
            UnsupportedAlgorithmError: If `algorithm` is neither "SHA-256" nor "SHA-512".

        """
        resolved = cls._from_identifier(algorithm)
        return resolved.hash_function, resolved.label

    @classmethod
    def from_label(cls, label: str) -> "DigestHeaderAlgorithm":
        """Map a wire label such as "sha-512" back to its algorithm. Labels are lowercase; "SHA-512" is not a label.

        Raises:
            UnsupportedAlgorithmError: If the label does not name a supported algorithm.

        """
        try:
            return _ALGORITHMS_BY_LABEL[label]
        except KeyError:
            raise UnsupportedAlgorithmError(
                f"Unsupported digest algorithm label: {label!r}"
            ) from None

    @classmethod
    def _from_identifier(
        cls, algorithm: "DigestHeaderAlgorithm | str"
    ) -> "DigestHeaderAlgorithm":
        if isinstance(algorithm, cls):
            return algorithm
        try:
            return cls(algorithm)
        except ValueError:
            raise UnsupportedAlgorithmError(
                f"Unsupported digest algorithm: {algorithm!r}"
            ) from None

    @classmethod
    def make_digest_header(
        cls,
        instance: bytes,
        algorithm: "DigestHeaderAlgorithm | str" = "SHA-256",
        padded: bool = True,
    ) -> HeaderShouldBeAdded:
        """Create the `Content-Digest` header for the given instance bytes.

        Args:
            instance: The bytes to compute the digest for, usually the message body.
            algorithm: "SHA-256" or "SHA-512", or the corresponding member.
            padded: Whether the base64 digest keeps its trailing `=` characters.

        Returns:
            HeaderShouldBeAdded: The header name ("Content-Digest") and its value.

        Raises:
            UnsupportedAlgorithmError: If the algorithm is not supported.

        """
        resolved = cls._from_identifier(algorithm)
        return HeaderShouldBeAdded(
            header_name=CONTENT_DIGEST_HEADER,
            header_value=f"{resolved.label}=:{resolved.encode(instance, padded)}:",
        )

    @classmethod
    def add_digest_header(
        cls,
        message: Message,
        algorithm: "DigestHeaderAlgorithm | str",
        instance: bytes,
        padded: bool = True,
    ) -> HeaderShouldBeAdded:
        """Compute the `Content-Digest` header for `instance` and add it to the message headers.

        `message` is either a mutable mapping of headers or an object with such a mapping as its
        `headers` attribute. An existing digest header is never overwritten; an empty or
        whitespace-only one counts as absent, as it does when verifying.

        Returns:
            HeaderShouldBeAdded: The header that was added.

        Raises:
            AlreadyPresentError: If the message already has a `Content-Digest` header.
            UnsupportedAlgorithmError: If the algorithm is not supported.

        """
        headers = cast(MutableMapping[str, str], _headers_of(message))
        key, existing = _find_header(headers, CONTENT_DIGEST_HEADER)
        if existing and existing.strip(" \t"):
            raise AlreadyPresentError("Content-Digest header already present")
        header = cls.make_digest_header(instance, algorithm, padded)
        # A blank header of another casing is replaced rather than duplicated.
        headers[key or header.header_name] = header.header_value
        logger.debug(
            "content_digest_added",
            algorithm=cls._from_identifier(algorithm).value,
            padded=padded,
        )
        return header

    @classmethod
    def verify_request(
        cls,
        message: Message,
        payload: Payload,
        padded: bool = True,
    ) -> "DigestHeaderAlgorithm":
        """Verify the `Content-Digest` header of a message against its payload.

        The payload stream is read to completion. Padded and unpadded digests are both accepted,
        whatever `padded` says; it only names the form this side would emit.

        Args:
            message: A mapping of headers, read-only ones included, or an object with one as its
                `headers` attribute.
                The header name is matched case-insensitively.
            payload: A binary stream to drain, or the payload bytes themselves.
            padded: The padding this side prefers.

        Returns:
            DigestHeaderAlgorithm: The algorithm the payload was verified with.

        Raises:
            MissingHeaderError: If there is no `Content-Digest` header, or it is empty.
            MalformedHeaderError: If the header is not of the form `<label>=:<digest>:`.
            UnsupportedAlgorithmError: If the label is neither sha-256 nor sha-512.
            ReadError: If the payload stream can not be read.
            DigestMismatchError: If the digest of the payload differs from the declared one.

        """
        _, header = _find_header(_headers_of(message), CONTENT_DIGEST_HEADER)
        if header is None or not header.strip(" \t"):
            raise MissingHeaderError("Missing Content-Digest header")

        try:
            label, encoded = _parse_digest_header(header)
        except MalformedHeaderError as exc:
            logger.warning("content_digest_malformed", reason=str(exc))
            raise

        algorithm = cls.from_label(label)
        expected = _decode_digest(encoded)
        if len(encoded.rstrip("=")) % 4 and encoded.endswith("=") != padded:
            logger.debug(
                "content_digest_padding_differs",
                algorithm=algorithm.value,
                padded=padded,
            )

        actual = algorithm.compute(_drain(payload))
        if not hmac.compare_digest(actual, expected):
            logger.warning("content_digest_mismatch", algorithm=algorithm.value)
            raise DigestMismatchError(
                f"Digest of the payload does not match the {algorithm.label} Content-Digest header"
            )

        logger.debug("content_digest_verified", algorithm=algorithm.value)
        return algorithm


_HASH_FUNCTIONS: MappingProxyType[DigestHeaderAlgorithm, Callable[..., Any]] = (
    MappingProxyType(
        {
            DigestHeaderAlgorithm.SHA256: hashlib.sha256,
            DigestHeaderAlgorithm.SHA512: hashlib.sha512,
        }
    )
)
_LABELS: MappingProxyType[DigestHeaderAlgorithm, str] = MappingProxyType(
    {
        DigestHeaderAlgorithm.SHA256: "sha-256",
        DigestHeaderAlgorithm.SHA512: "sha-512",
    }
)
_ALGORITHMS_BY_LABEL: MappingProxyType[str, DigestHeaderAlgorithm] = MappingProxyType(
    {label: algorithm for algorithm, label in _LABELS.items()}
)


def _headers_of(message: Message) -> Mapping[str, str]:
    if isinstance(message, Mapping):
        return message
    return message.headers


def _find_header(
    headers: Mapping[str, str], name: str
) -> tuple[str | None, str | None]:
    """Find a header by name, case-insensitively. Returns the stored key and its value."""
    for candidate in (name, name.lower()):
        value = headers.get(candidate)
        if value is not None:
            return candidate, value
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return key, value
    return None, None


def _parse_digest_header(header: str) -> tuple[str, str]:
    """Split a `Content-Digest` header into its label and its base64 digest, without decoding.

    Raises:
        MalformedHeaderError: If the header is not a single `<label>=:<digest>:` pair.

    """
    value = header.strip(" \t")
    if not value.endswith(":"):
        raise MalformedHeaderError("Content-Digest header must end with ':'")

    label, separator, encoded = value[:-1].partition("=:")
    if not separator:
        raise MalformedHeaderError(
            "Content-Digest header must be of the form <algorithm>=:<digest>:"
        )
    if not label:
        raise MalformedHeaderError("Content-Digest header has an empty algorithm")
    if not _LABEL_PATTERN.fullmatch(label):
        raise MalformedHeaderError(
            f"Content-Digest header has an invalid algorithm: {label!r}"
        )
    if not encoded:
        raise MalformedHeaderError("Content-Digest header has an empty digest")
    if ":" in encoded:
        raise MalformedHeaderError(
            "Content-Digest header must contain exactly one digest"
        )
    if not _DIGEST_PATTERN.fullmatch(encoded):
        raise MalformedHeaderError(
            "Content-Digest header digest is not URL-safe base64"
        )

    unpadded = encoded.rstrip("=")
    if len(unpadded) % 4 == 1 or (
        unpadded != encoded and len(encoded) % 4 != 0
    ):
        raise MalformedHeaderError(
            "Content-Digest header digest has an invalid base64 length"
        )
    return label, encoded


def _decode_digest(encoded: str) -> bytes:
    unpadded = encoded.rstrip("=")
    try:
        return base64.urlsafe_b64decode(unpadded + "=" * (-len(unpadded) % 4))
    except binascii.Error as exc:
        raise MalformedHeaderError(
            "Content-Digest header digest is not URL-safe base64"
        ) from exc


def _drain(payload: Payload) -> bytes:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    try:
        data = payload.read()
    except Exception as exc:
        raise ReadError(f"Could not read payload: {exc}") from exc
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise ReadError(
            f"Payload stream must yield bytes, got {type(data).__name__}"
        )
    return bytes(data)
