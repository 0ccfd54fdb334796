#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
index.py
In-memory model of the remote package index (repo.json).

Responsibilities:
- Parse and validate the index document into Package / Artifact objects.
- Keep packages immutable for the duration of a command.
- Expose sorted views so that every observable order is deterministic.
- Search by name, description or provided content.

Index document:
    {"packages": {<name>: {"version": ..., "min_api": "21", "dependencies": [...],
                           "conflicts": [...], "architectures": {<arch>: {
                               "url": ..., "sha256": ..., "size": ..., "uncompressed_size": ...,
                               "contents": [...]}}}}}
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .errors import IndexFormatError
from .locator import ContentLocator
from .log import get_logger

logger = get_logger(__name__)


# -----------------------
# Artifact / Package
# -----------------------
@dataclass(frozen=True)
class Artifact:
    url: str
    sha256: str
    size: int = 0
    uncompressed_size: int = 0
    contents: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, pkg: str, arch: str, data: Any) -> "Artifact":
        if not isinstance(data, Mapping):
            raise IndexFormatError(f"{pkg}: architecture '{arch}' must be an object")
        url = data.get("url")
        sha = data.get("sha256")
        if not url or not isinstance(url, str):
            raise IndexFormatError(f"{pkg}/{arch}: missing 'url'")
        if not sha or not isinstance(sha, str):
            raise IndexFormatError(f"{pkg}/{arch}: missing 'sha256'")
        return cls(
            url=url,
            sha256=sha,
            size=_as_int(data.get("size"), f"{pkg}/{arch}: size"),
            uncompressed_size=_as_int(data.get("uncompressed_size"), f"{pkg}/{arch}: uncompressed_size"),
            contents=tuple(_str_list(data.get("contents"), f"{pkg}/{arch}: contents")),
        )


@dataclass(frozen=True)
class Package:
    name: str
    version: str
    min_api: Optional[str] = None
    dependencies: Tuple[str, ...] = ()
    conflicts: Tuple[str, ...] = ()
    architectures: Mapping[str, Artifact] = field(default_factory=dict)
    description: str = ""
    homepage: str = ""
    license: str = ""

    @classmethod
    def from_dict(cls, name: str, data: Any) -> "Package":
        if not isinstance(data, Mapping):
            raise IndexFormatError(f"package '{name}' must be an object")
        version = data.get("version")
        if version is None or version == "":
            raise IndexFormatError(f"package '{name}': missing 'version'")
        min_api = data.get("min_api")
        archs = data.get("architectures") or {}
        if not isinstance(archs, Mapping):
            raise IndexFormatError(f"package '{name}': 'architectures' must be an object")
        return cls(
            name=name,
            version=str(version),
            min_api=None if min_api is None else str(min_api),
            dependencies=tuple(_str_list(data.get("dependencies"), f"{name}: dependencies")),
            conflicts=tuple(_str_list(data.get("conflicts"), f"{name}: conflicts")),
            architectures={arch: Artifact.from_dict(name, arch, a) for arch, a in archs.items()},
            description=str(data.get("description") or ""),
            homepage=str(data.get("homepage") or ""),
            license=str(data.get("license") or ""),
        )

    def artifact_for(self, arch: str) -> Optional[Artifact]:
        return self.architectures.get(arch)

    def __repr__(self) -> str:
        return f"<Package {self.name}-{self.version}>"


def _as_int(value: Any, what: str) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise IndexFormatError(f"{what} must be an integer, got {value!r}") from e


def _str_list(value: Any, what: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise IndexFormatError(f"{what} must be a list of strings")
    return list(value)


# -----------------------
# PackageIndex
# -----------------------
class PackageIndex:
    """
    Read-only catalog of every package in the remote index.
    """

    def __init__(self, packages: Optional[Mapping[str, Package]] = None):
        self._packages: Dict[str, Package] = dict(packages or {})

    @classmethod
    def from_dict(cls, doc: Any) -> "PackageIndex":
        if not isinstance(doc, Mapping) or not isinstance(doc.get("packages"), Mapping):
            raise IndexFormatError("index document must contain a 'packages' object")
        packages = {name: Package.from_dict(name, data) for name, data in doc["packages"].items()}
        logger.debug("Loaded index with %d packages", len(packages))
        return cls(packages)

    def get(self, name: str) -> Optional[Package]:
        return self._packages.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._packages

    def __len__(self) -> int:
        return len(self._packages)

    def __iter__(self) -> Iterator[Package]:
        return iter(self.packages())

    def names(self) -> List[str]:
        return sorted(self._packages)

    def packages(self) -> List[Package]:
        return [self._packages[n] for n in self.names()]

    def search(self, query: Optional[str] = None, arch: Optional[str] = None) -> List[Package]:
        """
        All packages when query is empty; otherwise packages whose name contains
        the query, whose description contains it (case-insensitive), or which
        provide a matching file for `arch` (every architecture when arch is None).
        """
        if not query:
            return self.packages()
        q = query.lower()
        out = []
        for pkg in self.packages():
            if query in pkg.name or q in pkg.description.lower():
                out.append(pkg)
                continue
            artifacts = [pkg.artifact_for(arch)] if arch else list(pkg.architectures.values())
            if any(a and ContentLocator.provides(a.contents, query) for a in artifacts):
                out.append(pkg)
        return out
