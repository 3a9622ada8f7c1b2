# staticstamp/modules/fingerprint.py
"""Build-time fingerprinting of a static asset directory.

``generate`` walks the asset root, hashes every regular file and returns an
immutable mapping of POSIX relative path -> fingerprint. The mapping is
written to a flat JSON table by ``write_table`` and loaded once by the
serving process with ``load_table``.

Fingerprints are keyed 64-bit BLAKE2b digests, URL-safe base64 without
padding, so they can sit directly in a query string (``?v=H8y4bzqH6Mg``).
They only need to notice accidental content changes, not tampering.
"""
from __future__ import annotations

import base64
import contextlib
import hashlib
import json
import os
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple

from staticstamp.inc.errors import (
    AssetIoError,
    PathEncodingError,
    TableError,
    UnexpectedIoError,
    WalkError,
)
from staticstamp.inc.logging import logger

FingerprintMap = Mapping[str, str]

DEFAULT_TABLE_NAME = "static_file_hashes.json"

_HASH_KEY = b"staticstamp.v1"
_DIGEST_SIZE = 8
_CHUNK_SIZE = 8192


def _check_text(path: str) -> str:
    # undecodable OS bytes come back as lone surrogates
    try:
        path.encode("utf-8")
    except UnicodeEncodeError as e:
        raise PathEncodingError(path) from e
    return path


def encode_digest(digest: bytes) -> str:
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def fingerprint_file(path: os.PathLike | str) -> str:
    h = hashlib.blake2b(digest_size=_DIGEST_SIZE, key=_HASH_KEY)
    try:
        with open(path, "rb") as fh:
            for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
                h.update(chunk)
    except OSError as e:
        raise AssetIoError(f"cannot read {path}: {e}") from e
    return encode_digest(h.digest())


def walk_assets(root: Path) -> Iterator[Tuple[Path, bool]]:
    """Yield ``(path, is_regular_file)`` for the root and everything below it.

    Entries come out sorted by name so repeated walks visit the same order.
    Symlinks are reported but never followed.
    """
    yield root, False
    try:
        with os.scandir(root) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise WalkError(f"cannot list {root}: {e}") from e

    for entry in entries:
        path = Path(entry.path)
        try:
            if entry.is_dir(follow_symlinks=False):
                yield from walk_assets(path)
                continue
            is_file = entry.is_file(follow_symlinks=False)
        except OSError as e:
            raise WalkError(f"cannot stat {path}: {e}") from e
        yield path, is_file


def generate(asset_root: os.PathLike | str,
             on_dependency: Optional[Callable[[str], None]] = None) -> FingerprintMap:
    """Fingerprint every regular file under ``asset_root``.

    ``on_dependency`` receives the text of every visited path (root, dirs
    and files) so a build system can rebuild when any of them change. The
    first failure aborts the whole run; no partial mapping is returned.
    """
    root = Path(asset_root)
    files: Dict[str, str] = {}

    for path, is_file in walk_assets(root):
        text = _check_text(str(path))
        if on_dependency is not None:
            on_dependency(text)
        if not is_file:
            continue

        rel = path.relative_to(root).as_posix()
        files[rel] = fingerprint_file(path)
        logger.debug(f"[fingerprint] {rel} -> {files[rel]}")

    logger.info(f"[fingerprint] {len(files)} file(s) fingerprinted under {root}")
    return MappingProxyType(dict(sorted(files.items())))


def dump_table(table: FingerprintMap) -> str:
    return json.dumps(dict(table), indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def write_table(table: FingerprintMap, out_path: os.PathLike | str) -> Path:
    out = Path(out_path)
    tmp = out.with_name(out.name + ".tmp")
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(dump_table(table), "utf-8")
        os.replace(tmp, out)
    except OSError as e:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise UnexpectedIoError(f"cannot write fingerprint table {out}: {e}") from e
    logger.info(f"[fingerprint] wrote {len(table)} entries to {out}")
    return out


def load_table(path: os.PathLike | str) -> FingerprintMap:
    p = Path(path)
    try:
        data = json.loads(p.read_text("utf-8"))
    except OSError as e:
        raise TableError(f"cannot read fingerprint table {p}: {e}") from e
    except ValueError as e:
        raise TableError(f"fingerprint table {p} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise TableError(f"fingerprint table {p} must be a JSON object")
    for k, v in data.items():
        if not isinstance(v, str):
            raise TableError(f"fingerprint table {p}: value for {k!r} is not a string")
    return MappingProxyType(data)


def dependency_lines(paths: Iterable[str]) -> str:
    return "".join(f"rerun-if-changed={p}\n" for p in paths)
