"""Deterministic identifiers for externally sourced items."""

import hashlib
import uuid
from typing import NamedTuple

URI_SCHEME = "jfresolve"


class CanonicalUri(NamedTuple):
    """The ``jfresolve://{kind}/{id}`` string an identifier is hashed from."""

    kind: str
    external_id: str

    def __str__(self) -> str:
        return f"{URI_SCHEME}://{self.kind}/{self.external_id}"

    def to_uuid(self) -> uuid.UUID:
        return _md5_uuid(str(self))

    @classmethod
    def parse(cls, text: str) -> "CanonicalUri":
        """Split a retained canonical string back into (kind, external id)."""
        prefix = f"{URI_SCHEME}://"
        if not text.startswith(prefix):
            raise ValueError(f"Not a {URI_SCHEME} URI: {text!r}")
        kind, sep, external_id = text[len(prefix) :].partition("/")
        if not sep or not kind or not external_id or "/" in external_id:
            raise ValueError(f"Malformed {URI_SCHEME} URI: {text!r}")
        return cls(kind, external_id)


def _md5_uuid(value: str) -> uuid.UUID:
    digest = hashlib.md5(value.encode("utf-8")).digest()
    # Same byte layout as a .NET Guid built from the digest
    return uuid.UUID(bytes_le=digest)


def canonical_uri(kind, external_id) -> CanonicalUri:
    kind = getattr(kind, "value", kind)
    return CanonicalUri(str(kind), str(external_id))


def identify(kind, external_id) -> uuid.UUID:
    """Return the stable identifier for an external (kind, id) pair."""
    return canonical_uri(kind, external_id).to_uuid()


def deterministic_id(scope: str, value: str, stream_url: str | None) -> uuid.UUID:
    """Identifier for artifacts without an explicit identity (e.g. episodes)."""
    return _md5_uuid(f"{scope}|{value}|{stream_url or ''}")
