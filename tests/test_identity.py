import hashlib
import uuid

import pytest

from app.models.media import MediaKind
from app.services.identity import (
    CanonicalUri,
    canonical_uri,
    deterministic_id,
    identify,
)


def test_identify_is_deterministic():
    assert identify(MediaKind.MOVIE, "100") == identify(MediaKind.MOVIE, "100")
    assert identify(MediaKind.MOVIE, 100) == identify("Movie", "100")


def test_identify_distinguishes_kind_and_id():
    assert identify(MediaKind.MOVIE, "100") != identify(MediaKind.SERIES, "100")
    assert identify(MediaKind.MOVIE, "100") != identify(MediaKind.MOVIE, "101")


def test_identify_uses_guid_byte_layout():
    digest = hashlib.md5(b"jfresolve://Movie/100").digest()
    expected = uuid.UUID(bytes_le=digest)

    assert identify(MediaKind.MOVIE, "100") == expected
    # Only the first three groups are byte-swapped
    assert expected.bytes[8:] == digest[8:]


def test_canonical_uri_round_trips_through_parse():
    uri = canonical_uri(MediaKind.SERIES, 1399)

    assert str(uri) == "jfresolve://Series/1399"
    assert CanonicalUri.parse(str(uri)) == uri
    assert uri.to_uuid() == identify(MediaKind.SERIES, 1399)


@pytest.mark.parametrize(
    "text",
    [
        "",
        "http://Movie/1",
        "jfresolve://Movie",
        "jfresolve:///1",
        "jfresolve://Movie/1/2",
    ],
)
def test_canonical_uri_parse_rejects_malformed(text):
    with pytest.raises(ValueError):
        CanonicalUri.parse(text)


def test_deterministic_id_depends_on_every_part():
    base = deterministic_id("Episode", "/shows/Bar/S01E01.strm", "http://x/1")

    assert base == deterministic_id("Episode", "/shows/Bar/S01E01.strm", "http://x/1")
    assert base != deterministic_id("Movie", "/shows/Bar/S01E01.strm", "http://x/1")
    assert base != deterministic_id("Episode", "/shows/Bar/S01E01.strm", "http://x/2")
    no_url = deterministic_id("Series", "Bar", None)
    assert no_url == deterministic_id("Series", "Bar", "")
