"""rfc9530_digest_headers package. Provides the `DigestHeaderAlgorithm` class to create and verify `Content-Digest` headers."""

from . import exceptions
from .functional import add_digest, create_digest, verify_digest
from .rfc9530 import CONTENT_DIGEST_HEADER, DigestHeaderAlgorithm, HeaderShouldBeAdded

__all__ = [
    "CONTENT_DIGEST_HEADER",
    "DigestHeaderAlgorithm",
    "HeaderShouldBeAdded",
    "add_digest",
    "create_digest",
    "exceptions",
    "verify_digest",
]
