"""
test_codec.py — Unit Tests for the Manifest Codec
===================================================
"""

import io
import random

import httpx
import pytest
from fastbencode import bdecode, bencode

from smf import codec
from smf.core.xor_stream import xor_bytes
from smf.errors import (
    CorruptPayloadError,
    FetchError,
    ShortHeaderError,
    UnrecognizedFormatError,
    UnsupportedVersionError,
)
from smf.models import DataBlock, DataType, EncodeType, Info, Status


@pytest.fixture
def sample_info():
    """A three-block manifest for a 300-byte resource."""
    info = Info(
        status=Status.FINISH,
        hash=bytes(range(32)),
        name="a.bin",
        size=300,
        block_size=100,
        encode=EncodeType.IMAGE,
        type=DataType.STREAM,
    )
    for i in range(3):
        info.append_block(DataBlock(hash=bytes([i]) * 32, index=i, data=bytes([i + 1]) * 100))
    return info


class FixedKey:
    """Stand-in random source that always yields the same key."""

    def __init__(self, key):
        self.key = key

    def randint(self, low, high):
        return self.key


class TrickleStream:
    """Binary stream that returns at most one byte per sized read."""

    def __init__(self, data):
        self._buffer = io.BytesIO(data)

    def read(self, size=-1):
        if size is None or size < 0:
            return self._buffer.read()
        return self._buffer.read(min(size, 1))


class TestEncode:
    """Tests for the framed output."""

    def test_header_layout(self, sample_info):
        data = codec.encode(sample_info)
        assert data[:4] == b"\x14SMF"
        assert data[4] == 1
        assert 1 <= data[5] <= 254

    def test_payload_is_obfuscated_bencode(self, sample_info):
        data = codec.encode(sample_info, rng=FixedKey(0x42))
        assert data[5] == 0x42
        assert b"a.bin" not in data[6:]

        raw = bdecode(xor_bytes(data[6:], 0x42))
        assert raw[b"name"] == b"a.bin"
        assert raw[b"size"] == 300
        assert raw[b"block_size"] == 100
        assert [entry[b"i"] for entry in raw[b"block"]] == [0, 1, 2]

    def test_keys_stay_in_range(self):
        rng = random.Random(1234)
        keys = {codec.generate_key(rng) for _ in range(5000)}
        assert min(keys) >= 1
        assert max(keys) <= 254

    def test_encode_to_unwritable_path_raises_oserror(self, sample_info, tmp_path):
        with pytest.raises(OSError):
            codec.encode_to_file(tmp_path / "missing" / "a.smf", sample_info)


class TestRoundTrip:
    """Decoding what was encoded gives back the same manifest."""

    def test_roundtrip_many_keys(self, sample_info):
        """Round-trip holds regardless of the key chosen."""
        for key in (1, 2, 0x14, 127, 200, 254):
            assert codec.decode(codec.encode(sample_info, rng=FixedKey(key))) == sample_info

    def test_roundtrip_seeded_random(self, sample_info):
        rng = random.Random(7)
        for _ in range(20):
            assert codec.decode(codec.encode(sample_info, rng=rng)) == sample_info

    def test_roundtrip_empty_info(self):
        info = Info()
        assert codec.decode(codec.encode(info)) == info

    def test_roundtrip_unicode_name(self):
        info = Info(name="résumé-数据.bin", type=DataType.URI)
        info.append_block(DataBlock(index=0, data=b"https://example.com/blocks/0"))
        assert codec.decode(codec.encode(info)) == info

    def test_end_to_end_file(self, tmp_path):
        """Three blocks of a 300-byte file survive a trip through disk."""
        info = Info(name="a.bin", size=300, block_size=100)
        for i in range(3):
            info.append_block(DataBlock(hash=b"hash-%d" % i, index=i, data=b"x" * 100))

        path = tmp_path / "a.smf"
        codec.encode_to_file(path, info)
        decoded = codec.decode_from_file(path)

        assert decoded.size == 300
        assert len(decoded.block) == 3
        assert {b.index for b in decoded.block} == {0, 1, 2}
        for original in info.block:
            assert decoded.get_block(original.index) == original

    def test_encode_overwrites_existing_file(self, sample_info, tmp_path):
        path = tmp_path / "a.smf"
        path.write_bytes(b"z" * 100000)
        codec.encode_to_file(path, sample_info)
        assert codec.decode_from_file(path) == sample_info

    def test_short_reads_are_tolerated(self, sample_info):
        stream = TrickleStream(codec.encode(sample_info))
        assert codec.decode_from_stream(stream) == sample_info


class TestDecodeErrors:
    """Each failure kind surfaces as its own error."""

    def test_short_header(self):
        for size in range(6):
            with pytest.raises(ShortHeaderError, match="header bytes"):
                codec.decode(b"\x14SMF\x01\x05"[:size])

    def test_wrong_magic(self):
        with pytest.raises(UnrecognizedFormatError, match="magic"):
            codec.decode(b"PK\x03\x04" + b"\x01\x05" + b"anything at all")

    def test_wrong_magic_not_corrupt_payload(self):
        with pytest.raises(UnrecognizedFormatError):
            codec.decode(b"\x00" * 64)

    def test_unsupported_version(self, sample_info):
        data = bytearray(codec.encode(sample_info))
        data[4] = 2
        with pytest.raises(UnsupportedVersionError) as excinfo:
            codec.decode(bytes(data))
        assert excinfo.value.version == 2

    def test_zero_key(self):
        with pytest.raises(CorruptPayloadError, match="zero"):
            codec.decode(b"\x14SMF\x01\x00" + bencode({b"name": b"x"}))

    def test_garbage_payload(self):
        with pytest.raises(CorruptPayloadError):
            codec.decode(b"\x14SMF\x01\x07" + b"not bencode at all")

    def test_empty_payload(self):
        with pytest.raises(CorruptPayloadError):
            codec.decode(b"\x14SMF\x01\x07")

    def test_truncated_payload(self, sample_info):
        data = codec.encode(sample_info)
        with pytest.raises(CorruptPayloadError):
            codec.decode(data[:-10])

    def test_payload_not_a_dictionary(self):
        payload = xor_bytes(bencode([1, 2, 3]), 9)
        with pytest.raises(CorruptPayloadError, match="dictionary"):
            codec.decode(b"\x14SMF\x01\x09" + payload)

    def test_duplicate_block_indices(self):
        raw = {
            b"name": b"dup",
            b"block": [{b"i": 1, b"h": b"a"}, {b"i": 1, b"h": b"b"}],
        }
        payload = xor_bytes(bencode(raw), 9)
        with pytest.raises(CorruptPayloadError, match="Duplicate"):
            codec.decode(b"\x14SMF\x01\x09" + payload)

    def test_unknown_status(self):
        payload = xor_bytes(bencode({b"status": 42}), 9)
        with pytest.raises(CorruptPayloadError):
            codec.decode(b"\x14SMF\x01\x09" + payload)

    def test_missing_keys_take_defaults(self):
        payload = xor_bytes(bencode({b"name": b"partial"}), 9)
        info = codec.decode(b"\x14SMF\x01\x09" + payload)
        assert info == Info(name="partial")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            codec.decode_from_file(tmp_path / "nope.smf")


class TestDecodeFromUrl:
    """Tests for fetching manifests over HTTP."""

    def _client(self, handler):
        return httpx.Client(transport=httpx.MockTransport(handler))

    def test_fetch_and_decode(self, sample_info):
        body = codec.encode(sample_info)

        def handler(request):
            assert request.url.path == "/a.smf"
            return httpx.Response(200, content=body)

        with self._client(handler) as client:
            assert codec.decode_from_url("http://peer/a.smf", client=client) == sample_info

    def test_follows_redirects(self, sample_info):
        body = codec.encode(sample_info)

        def handler(request):
            if request.url.path == "/old.smf":
                return httpx.Response(302, headers={"Location": "http://peer/new.smf"})
            return httpx.Response(200, content=body)

        with self._client(handler) as client:
            assert codec.decode_from_url("http://peer/old.smf", client=client) == sample_info

    def test_http_error_status(self):
        with self._client(lambda request: httpx.Response(404)) as client:
            with pytest.raises(FetchError, match="404") as excinfo:
                codec.decode_from_url("http://peer/missing.smf", client=client)
        assert excinfo.value.url == "http://peer/missing.smf"

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with self._client(handler) as client:
            with pytest.raises(FetchError, match="connection refused"):
                codec.decode_from_url("http://peer/a.smf", client=client)

    def test_format_error_is_not_fetch_error(self):
        with self._client(lambda request: httpx.Response(200, content=b"<html>")) as client:
            with pytest.raises(UnrecognizedFormatError):
                codec.decode_from_url("http://peer/a.smf", client=client)


class TestLoad:
    """Tests for source dispatch."""

    def test_load_path_bytes_and_stream(self, sample_info, tmp_path):
        data = codec.encode(sample_info)
        path = tmp_path / "a.smf"
        path.write_bytes(data)

        assert codec.load(path) == sample_info
        assert codec.load(str(path)) == sample_info
        assert codec.load(data) == sample_info
        assert codec.load(io.BytesIO(data)) == sample_info

    def test_load_url(self, sample_info):
        body = codec.encode(sample_info)
        client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, content=body)))
        with client:
            assert codec.load("https://peer/a.smf", client=client) == sample_info
