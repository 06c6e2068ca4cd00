"""
errors.py — Manifest Error Types
==================================
Every failure raised by the manifest and download-state codecs derives
from ManifestError. File-system failures are not wrapped: they surface
as the builtin OSError family.
"""


class ManifestError(Exception):
    """Base class for manifest codec errors."""


class ShortHeaderError(ManifestError):
    """Fewer than the 6 header bytes were available."""


class UnrecognizedFormatError(ManifestError):
    """The magic tag does not match; the input is not a manifest."""


class UnsupportedVersionError(ManifestError):
    """The header carries a format version this codec cannot read."""

    def __init__(self, version: int):
        super().__init__(f"Unsupported manifest version {version}")
        self.version = version


class CorruptPayloadError(ManifestError):
    """The header is valid but the payload could not be decoded."""


class EncodeError(ManifestError):
    """A manifest could not be represented by the structured encoder."""


class FetchError(ManifestError):
    """Retrieving a manifest from a remote URL failed."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch manifest from {url}: {reason}")
        self.url = url
