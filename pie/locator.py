# pie/locator.py
"""
Content locator: map a file or command name to the package that provides it.

A query matches a content path when it is
- the path itself (leading slashes ignored),
- the path's final segment ("busybox" for "bin/busybox"),
- the part of the path below any "bin" component ("x/tool" for "usr/bin/x/tool"),
- or, for queries containing "/", a segment-aligned suffix of the path or the
  path a segment-aligned suffix of the query ("/data/local/andstore/bin/busybox").

Ambiguous queries resolve to the lexicographically smallest package name.
"""

from __future__ import annotations
from typing import Iterable, Optional

from .log import get_logger

logger = get_logger(__name__)


class ContentLocator:

    @staticmethod
    def matches(query: str, path: str) -> bool:
        q = query.strip().strip("/")
        p = path.strip().strip("/")
        if not q or not p:
            return False
        if q == p:
            return True
        parts = p.split("/")
        if q == parts[-1]:
            return True
        for i, part in enumerate(parts[:-1]):
            if part == "bin" and q == "/".join(parts[i + 1:]):
                return True
        if "/" in q:
            return p.endswith("/" + q) or q.endswith("/" + p)
        return False

    @classmethod
    def provides(cls, contents: Iterable[str], query: str) -> bool:
        return any(cls.matches(query, path) for path in contents)

    @classmethod
    def find_in_index(cls, index, query: str, arch: str) -> Optional[str]:
        """First package (by name) whose artifact for `arch` provides `query`."""
        for pkg in index.packages():
            artifact = pkg.artifact_for(arch)
            if artifact and cls.provides(artifact.contents, query):
                logger.info("'%s' is provided by package %s", query, pkg.name)
                return pkg.name
        return None

    @classmethod
    def find_in_ledger(cls, ledger, query: str) -> Optional[str]:
        """First installed package (by name) that owns a file matching `query`."""
        for entry in ledger.packages():
            if cls.provides(entry.contents, query):
                logger.info("'%s' is owned by installed package %s", query, entry.name)
                return entry.name
        return None
