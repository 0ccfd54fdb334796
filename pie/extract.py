#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
extract.py
Unpacks package artifacts into the install root.

Features:
- Artifacts are zstd-compressed tar streams (.tar.zst)
- Decompression with the zstandard binding, extraction with tarfile ("tar" filter)
- Existing files and symlinks at member paths are replaced
- Returns the set of root-relative paths written
"""

from __future__ import annotations
import io
import tarfile
from pathlib import Path
from typing import Set, Union

import zstandard

from .errors import FilesystemFailure
from .ledger import resolve_under_root
from .log import get_logger
from .utils import ensure_dir

logger = get_logger(__name__)


def _member_path(name: str) -> str:
    name = name.strip()
    while name.startswith("./"):
        name = name[2:]
    return name.strip("/")


def _clear_existing(dest: Path, member: tarfile.TarInfo) -> None:
    if dest.is_symlink() or dest.is_file():
        dest.unlink()
    elif dest.is_dir() and not member.isdir():
        raise FilesystemFailure(f"Cannot overwrite directory {dest} with a file")


def unpack(data: bytes, root: Union[str, Path]) -> Set[str]:
    """
    Extract a .tar.zst payload into `root`, overwriting pre-existing paths.
    """
    root = Path(root)
    written: Set[str] = set()
    try:
        ensure_dir(root)
        dctx = zstandard.ZstdDecompressor()
        with dctx.stream_reader(io.BytesIO(data)) as reader:
            with tarfile.open(fileobj=reader, mode="r|") as tar:
                for member in tar:
                    rel = _member_path(member.name)
                    if not rel:
                        continue
                    dest = resolve_under_root(root, rel)
                    _clear_existing(dest, member)
                    tar.extract(member, path=str(root), filter="tar")
                    if not member.isdir():
                        written.add(rel)
    except (tarfile.TarError, zstandard.ZstdError) as e:
        raise FilesystemFailure(f"Corrupt package archive: {e}") from e
    except OSError as e:
        raise FilesystemFailure(f"Extraction into {root} failed: {e}") from e
    logger.info("Extracted %d files into %s", len(written), root)
    return written
