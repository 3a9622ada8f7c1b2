# staticstamp/inc/errors.py
# Error taxonomy shared by the fingerprint generator and the request resolver.
# Every error carries the HTTP status the web layer answers with; not-found and
# out-of-bounds deliberately share 404 so traversal attempts look like misses.
from __future__ import annotations


class StaticFilesError(Exception):
    status = 500


class ConfigError(StaticFilesError):
    """Missing or unusable configuration at startup."""


class TableError(StaticFilesError):
    """Fingerprint table file is unreadable or malformed."""


class PathEncodingError(StaticFilesError):
    """A request or asset path that cannot be represented as UTF-8 text."""
    status = 400

    def __init__(self, path: object):
        super().__init__(f"path is not valid UTF-8 text: {path!r}")
        self.path = path


class NotFoundError(StaticFilesError):
    status = 404


class OutOfBoundsError(NotFoundError):
    """Resolved path escapes the asset root."""


class UnexpectedIoError(StaticFilesError):
    status = 500


class WalkError(UnexpectedIoError):
    """Directory enumeration failed while generating fingerprints."""


class AssetIoError(UnexpectedIoError):
    """An asset could not be opened or read while generating fingerprints."""
