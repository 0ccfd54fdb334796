#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
resolver.py
Dependency resolver.

Features:
- Reads the dependency lists from the package index
- Depth-first, post-order walk with an explicit stack (no recursion limit)
- Skips packages already in the ledger or already scheduled
- Cycles are broken silently by the visited set
- Diamond dependencies are scheduled once, at their first discovery
"""

from __future__ import annotations
from typing import Iterator, List, Set, Tuple

from .errors import NotFound
from .index import PackageIndex
from .ledger import InstalledLedger
from .log import get_logger

logger = get_logger(__name__)


class DependencyResolver:

    def resolve(self, index: PackageIndex, target: str, ledger: InstalledLedger) -> List[str]:
        """
        Return the not-yet-installed dependencies of `target`, each one placed
        after everything it depends on. The target itself is not included.
        """
        root = index.get(target)
        if root is None:
            raise NotFound(f"Package '{target}' not found")

        visited: Set[str] = {target}
        order: List[str] = []
        stack: List[Tuple[str, Iterator[str]]] = [(target, iter(root.dependencies))]

        while stack:
            name, deps = stack[-1]
            dep = next(deps, None)
            if dep is None:
                stack.pop()
                if name != target:
                    order.append(name)
                continue
            if dep in visited:
                continue
            if ledger.exists(dep):
                logger.debug("%s: dependency %s already installed", name, dep)
                continue
            pkg = index.get(dep)
            if pkg is None:
                raise NotFound(f"Dependency '{dep}' of '{name}' not found")
            visited.add(dep)
            stack.append((dep, iter(pkg.dependencies)))

        logger.info("Resolved dependencies of %s: %s", target, order or "none")
        return order
