"""
conflicts.py
Detects installed packages the install target declares itself incompatible
with, and removes them once the removal has been confirmed.
"""

from __future__ import annotations
from pathlib import Path
from typing import List, Union

from .errors import NotFound
from .index import PackageIndex
from .ledger import InstalledLedger, remove_owned_files
from .log import get_logger

logger = get_logger(__name__)


class ConflictHandler:

    def stage(self, index: PackageIndex, target_name: str, ledger: InstalledLedger) -> List[str]:
        """Installed packages named in the target's conflict list, in declared order."""
        target = index.get(target_name)
        if target is None:
            raise NotFound(f"Package '{target_name}' not found")
        staged: List[str] = []
        for name in target.conflicts:
            if name != target.name and ledger.exists(name) and name not in staged:
                staged.append(name)
        if staged:
            logger.info("%s conflicts with installed: %s", target.name, ", ".join(staged))
        return staged

    def apply(self, staged: List[str], ledger: InstalledLedger, root: Union[str, Path]) -> List[str]:
        """
        Remove every staged package's files and ledger entry, then persist the
        ledger so it matches the filesystem.
        """
        removed: List[str] = []
        for name in staged:
            if not ledger.exists(name):
                continue
            entry, orphaned = ledger.release(name)
            remove_owned_files(root, orphaned)
            removed.append(name)
            logger.info("Removed conflicting package %s-%s", entry.name, entry.version)
        if removed:
            ledger.save()
        return removed
