# pie/ledger.py
# -*- coding: utf-8 -*-
"""
InstalledLedger - local record of installed packages for pie

Features:
- JSON document {"packages": {<name>: {name, version, contents}}} under the state dir
- Atomic persistence (.tmp + rename), sorted keys for stable output
- Inverted file index (file_owner) rebuilt on load; release() keeps files another package still owns
- Exclusive advisory lock (portalocker) serializing whole transactions
- remove_owned_files(): the single primitive that deletes package files from the install root
"""

from __future__ import annotations

import contextlib
import json
import posixpath
import time
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import portalocker

from .errors import FilesystemFailure, LockTimeout
from .log import get_logger
from .utils import ensure_dir, write_atomic

logger = get_logger(__name__)


# ---------------- Data types ----------------

@dataclass
class InstalledPackage:
    name: str
    version: str
    contents: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "contents": list(self.contents),
        }

    @staticmethod
    def from_dict(name: str, d: Dict[str, Any]) -> "InstalledPackage":
        return InstalledPackage(
            name=name,
            version=str(d.get("version", "")),
            contents=list(d.get("contents") or []),
        )


# ---------------- InstalledLedger ----------------

class InstalledLedger:
    """
    The installed-package ledger.

    Usage:
        ledger = InstalledLedger(cfg.ledger_path)
        ledger.load()
        ledger.add(InstalledPackage("curl", "8.1", ["usr/bin/curl"]))
        ledger.save()
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._data: Dict[str, InstalledPackage] = {}
        self._file_index: Dict[str, List[str]] = defaultdict(list)

    @classmethod
    def open(cls, path: Union[str, Path]) -> "InstalledLedger":
        ledger = cls(path)
        ledger.load()
        return ledger

    # ------ IO ------
    def load(self) -> None:
        """
        Load the ledger. A missing file is an empty ledger.
        """
        self._data = {}
        if not self.path.exists():
            logger.debug("Ledger not found at %s; starting empty", self.path)
            self._rebuild_index()
            return
        try:
            doc = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise FilesystemFailure(f"Failed to read ledger {self.path}: {e}") from e
        packages = doc.get("packages") if isinstance(doc, dict) else None
        if not isinstance(packages, dict):
            raise FilesystemFailure(f"Ledger {self.path} is malformed: missing 'packages' object")
        for name, rec in packages.items():
            if isinstance(rec, dict):
                self._data[name] = InstalledPackage.from_dict(name, rec)
            else:
                logger.warning("Skipping invalid ledger record for %s", name)
        self._rebuild_index()
        logger.debug("Ledger loaded with %d packages", len(self._data))

    def save(self) -> None:
        out = {"packages": {n: self._data[n].to_dict() for n in sorted(self._data)}}
        try:
            ensure_dir(self.path.parent)
            write_atomic(self.path, json.dumps(out, indent=2, ensure_ascii=False) + "\n")
        except OSError as e:
            raise FilesystemFailure(f"Failed to write ledger {self.path}: {e}") from e
        logger.info("Ledger saved to %s (%d packages)", self.path, len(self._data))

    # ------ index helpers ------
    def _rebuild_index(self) -> None:
        self._file_index = defaultdict(list)
        for name in sorted(self._data):
            for f in self._data[name].contents:
                self._file_index[_norm(f)].append(name)

    # ------ CRUD API ------
    def exists(self, name: str) -> bool:
        return name in self._data

    def __contains__(self, name: object) -> bool:
        return name in self._data

    def __len__(self) -> int:
        return len(self._data)

    def get(self, name: str) -> Optional[InstalledPackage]:
        return self._data.get(name)

    def add(self, pkg: InstalledPackage) -> None:
        old = self._data.get(pkg.name)
        self._data[pkg.name] = pkg
        if old is not None:
            self._rebuild_index()
        else:
            for f in pkg.contents:
                self._file_index[_norm(f)].append(pkg.name)

    def remove(self, name: str) -> InstalledPackage:
        rec = self._data.pop(name, None)
        if rec is None:
            raise KeyError("Package not installed: " + name)
        self._rebuild_index()
        return rec

    def release(self, name: str) -> Tuple[InstalledPackage, List[str]]:
        """
        Drop `name` from the ledger. Returns its record and the recorded paths
        that no remaining package owns, i.e. the files safe to delete.
        """
        rec = self.remove(name)
        orphaned = [f for f in rec.contents if not self._file_index.get(_norm(f))]
        shared = len(rec.contents) - len(orphaned)
        if shared:
            logger.info("%s: keeping %d file(s) still owned by other packages", name, shared)
        return rec, orphaned

    def packages(self) -> List[InstalledPackage]:
        return [self._data[n] for n in sorted(self._data)]

    def names(self) -> List[str]:
        return sorted(self._data)

    def file_owner(self, filepath: Union[str, Path]) -> List[str]:
        """
        Names of the installed packages that own the given root-relative path.
        """
        return list(self._file_index.get(_norm(str(filepath)), []))


def _norm(path: str) -> str:
    return path.strip().strip("/")


# ---------------- Transaction lock ----------------

@contextlib.contextmanager
def transaction_lock(lock_path: Union[str, Path], timeout: float = 30.0, poll: float = 0.1) -> Iterator[None]:
    """
    Hold an exclusive advisory lock on `lock_path` for the whole block.
    Concurrent pie invocations wait up to `timeout` seconds, then fail with LockTimeout.
    """
    lock_path = Path(lock_path)
    try:
        ensure_dir(lock_path.parent)
        fh = lock_path.open("a+b")
    except OSError as e:
        raise FilesystemFailure(f"Cannot open lock file {lock_path}: {e}") from e
    start = time.monotonic()
    try:
        while True:
            try:
                portalocker.lock(fh, portalocker.LockFlags.EXCLUSIVE | portalocker.LockFlags.NON_BLOCKING)
                break
            except portalocker.LockException as e:
                if time.monotonic() - start > timeout:
                    raise LockTimeout(
                        f"Another pie process holds {lock_path}; gave up after {timeout:g}s"
                    ) from e
                time.sleep(poll)
        logger.debug("Acquired transaction lock %s", lock_path)
        try:
            yield
        finally:
            portalocker.unlock(fh)
            logger.debug("Released transaction lock %s", lock_path)
    finally:
        fh.close()


# ---------------- File removal ----------------

def resolve_under_root(root: Path, rel: str) -> Path:
    """
    Join a content path onto the install root, refusing paths that escape it.
    """
    norm = posixpath.normpath(_norm(rel))
    if norm in (".", "..") or norm.startswith("../"):
        raise FilesystemFailure(f"Refusing path outside install root: {rel}")
    return Path(root) / norm


def remove_owned_files(root: Union[str, Path], paths: Iterable[str]) -> List[str]:
    """
    Delete the listed root-relative paths. Missing files are skipped; listed
    directories are removed only when empty. Returns the paths actually removed.
    """
    root = Path(root)
    removed: List[str] = []
    for rel in paths:
        target = resolve_under_root(root, rel)
        try:
            if target.is_symlink() or target.is_file():
                target.unlink()
                removed.append(rel)
            elif target.is_dir():
                if not any(target.iterdir()):
                    target.rmdir()
                    removed.append(rel)
                else:
                    logger.debug("Keeping non-empty directory %s", target)
            else:
                logger.debug("Already absent: %s", target)
        except OSError as e:
            raise FilesystemFailure(f"Failed to remove {target}: {e}") from e
    return removed
