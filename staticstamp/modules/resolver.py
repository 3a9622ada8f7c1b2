# staticstamp/modules/resolver.py
"""Request-time resolution of static asset requests.

``resolve`` turns a request path plus the fingerprint the client claims to
have (the ``v`` query parameter) into either a file to serve or a redirect
to the canonical fingerprinted URL:

    claimed == current      -> serve, Cache-Control: public, max-age=31536000
    claimed != current/None -> 302 to <prefix>/<path>?v=<current>, uncached
    path not in the table   -> serve, uncached, never redirected

Anything that canonicalizes outside the asset root is answered exactly like
a missing file.
"""
from __future__ import annotations

import mimetypes
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Optional, Union
from urllib.parse import quote

from staticstamp.inc.errors import (
    ConfigError,
    NotFoundError,
    OutOfBoundsError,
    PathEncodingError,
    StaticFilesError,
    UnexpectedIoError,
)
from staticstamp.inc.logging import logger
from staticstamp.modules.fingerprint import DEFAULT_TABLE_NAME, FingerprintMap, load_table

VERSION_PARAM = "v"
CACHE_FOREVER = "public, max-age=31536000"  # one year
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def normalize_prefix(prefix: str) -> str:
    prefix = "/" + (prefix or "").strip("/")
    return "" if prefix == "/" else prefix


@dataclass(frozen=True)
class ServeConfig:
    asset_root: Path
    path_prefix: str

    @classmethod
    def create(cls, serve_from: os.PathLike | str, path_prefix: str = "/static",
               base_dir: Optional[os.PathLike | str] = None) -> "ServeConfig":
        root = Path(serve_from)
        if not root.is_absolute() and base_dir is not None:
            root = Path(base_dir) / root
        try:
            root = root.resolve(strict=True)
        except (OSError, RuntimeError) as e:
            raise ConfigError(f"cannot canonicalize asset root {root}: {e}") from e
        if not root.is_dir():
            raise ConfigError(f"asset root {root} is not a directory")
        return cls(asset_root=root, path_prefix=normalize_prefix(path_prefix))


@dataclass
class ServeFile:
    path: Path
    file: BinaryIO = field(repr=False)
    size: int
    content_type: str
    cache_control: Optional[str] = None

    @property
    def cacheable(self) -> bool:
        return self.cache_control is not None

    def close(self) -> None:
        self.file.close()

    def __enter__(self) -> "ServeFile":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


@dataclass(frozen=True)
class Redirect:
    location: str
    status: int = 302


Outcome = Union[ServeFile, Redirect]


def asset_url(rel_path: str, prefix: str, fingerprint: Optional[str] = None) -> str:
    url = f"{prefix}/{quote(rel_path, safe='/')}"
    if fingerprint:
        url += f"?{VERSION_PARAM}={quote(fingerprint, safe='')}"
    return url


def url_for(path: str, table: FingerprintMap, config: ServeConfig) -> str:
    """Link to ``path`` under the mount prefix, fingerprinted when tracked."""
    key = path.lstrip("/")
    return asset_url(key, config.path_prefix, table.get(key))


def guess_content_type(path: os.PathLike | str) -> str:
    ctype, _ = mimetypes.guess_type(str(path))
    return ctype or DEFAULT_CONTENT_TYPE


def _as_text(request_path: Union[str, bytes]) -> str:
    if isinstance(request_path, bytes):
        try:
            text = request_path.decode("utf-8")
        except UnicodeDecodeError as e:
            raise PathEncodingError(request_path) from e
    else:
        text = request_path
        try:
            text.encode("utf-8")
        except UnicodeEncodeError as e:
            raise PathEncodingError(request_path) from e
    if "\x00" in text:
        raise PathEncodingError(request_path)
    return text.lstrip("/")


def _io_error(e: OSError, path: Path) -> StaticFilesError:
    # classification only: permission problems are server errors, not misses
    if isinstance(e, (FileNotFoundError, NotADirectoryError)):
        return NotFoundError(str(path))
    return UnexpectedIoError(f"{path}: {e}")


def _canonicalize(root: Path, rel: str) -> Path:
    candidate = root / rel
    try:
        return candidate.resolve(strict=True)
    except OSError as e:
        raise _io_error(e, candidate) from e
    except RuntimeError as e:  # symlink loop on older interpreters
        raise UnexpectedIoError(f"{candidate}: {e}") from e


def _open(target: Path, cache_control: Optional[str]) -> ServeFile:
    try:
        st = target.stat()
    except OSError as e:
        raise _io_error(e, target) from e
    if not stat.S_ISREG(st.st_mode):
        raise NotFoundError(str(target))
    try:
        fh = open(target, "rb")
    except OSError as e:
        raise _io_error(e, target) from e
    return ServeFile(
        path=target,
        file=fh,
        size=st.st_size,
        content_type=guess_content_type(target),
        cache_control=cache_control,
    )


def resolve(request_path: Union[str, bytes], claimed: Optional[str],
            table: FingerprintMap, config: ServeConfig) -> Outcome:
    """Decide how to answer one static file request.

    Raises ``PathEncodingError`` (400), ``NotFoundError`` or
    ``OutOfBoundsError`` (404) and ``UnexpectedIoError`` (500). A returned
    ``ServeFile`` owns an open file handle the caller must close.
    """
    rel = _as_text(request_path)
    target = _canonicalize(config.asset_root, rel)
    try:
        target.relative_to(config.asset_root)
    except ValueError:
        raise OutOfBoundsError(rel) from None

    current = table.get(rel)
    if current is None:
        logger.debug(f"[static] {rel}: untracked, serving uncached")
        return _open(target, None)
    if claimed == current:
        return _open(target, CACHE_FOREVER)

    location = asset_url(rel, config.path_prefix, current)
    logger.debug(f"[static] {rel}: claimed {claimed!r}, redirecting to {location}")
    return Redirect(location)


@dataclass(frozen=True)
class StaticFiles:
    """Serve config and fingerprint table, built once and shared by every request."""
    config: ServeConfig
    table: FingerprintMap

    @classmethod
    def from_settings(cls, settings) -> "StaticFiles":
        settings.require("STATIC", "serve_from", allow_empty=False)
        base_dir = settings.base_dir
        config = ServeConfig.create(
            settings.get("STATIC.serve_from"),
            settings.get("STATIC.path_prefix", "/static"),
            base_dir=base_dir,
        )
        table_path = Path(settings.get("STATIC.table", DEFAULT_TABLE_NAME))
        if not table_path.is_absolute():
            table_path = base_dir / table_path
        table = load_table(table_path)
        logger.info(f"[static] serving {config.asset_root} at {config.path_prefix or '/'} ({len(table)} fingerprints)")
        return cls(config=config, table=table)

    def url_for(self, path: str) -> str:
        return url_for(path, self.table, self.config)

    def resolve(self, request_path: Union[str, bytes], claimed: Optional[str] = None) -> Outcome:
        return resolve(request_path, claimed, self.table, self.config)
