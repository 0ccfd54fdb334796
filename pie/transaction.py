# pie/transaction.py
"""
Install and uninstall transactions.

InstallTransaction walks the states
    RESOLVING_TARGET -> CHECKING_COMPATIBILITY -> RESOLVING_CONFLICTS ->
    RESOLVING_DEPENDENCIES -> ACCOUNTING -> AWAITING_CONFIRMATION ->
    INSTALLING -> PERSISTING -> DONE
and ends in ABORTED on any error. The whole run holds the transaction lock.

Ledger contract:
- conflict removal is confirmed separately and applied (and persisted)
  immediately; cancelling later does not bring the conflicts back
- the ledger is persisted after every package that installs successfully,
  so a failure part-way through a batch never leaves unregistered files
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from rich.console import Console
from rich.table import Table

from .config import Config
from .confirm import Confirmer
from .conflicts import ConflictHandler
from .device import Device
from .errors import (
    ArchitectureUnavailable,
    ChecksumMismatch,
    IncompatibleApi,
    MinApiFormatError,
    NotFound,
    PieError,
    UserCancelled,
)
from .extract import unpack
from .index import Package, PackageIndex
from .ledger import InstalledLedger, InstalledPackage, remove_owned_files, transaction_lock
from .locator import ContentLocator
from .log import get_logger
from .resolver import DependencyResolver
from .utils import human_size, sha256_bytes

logger = get_logger(__name__)


class TxState(enum.Enum):
    PENDING = "pending"
    RESOLVING_TARGET = "resolving-target"
    CHECKING_COMPATIBILITY = "checking-compatibility"
    RESOLVING_CONFLICTS = "resolving-conflicts"
    RESOLVING_DEPENDENCIES = "resolving-dependencies"
    ACCOUNTING = "accounting"
    AWAITING_CONFIRMATION = "awaiting-confirmation"
    INSTALLING = "installing"
    PERSISTING = "persisting"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class InstallPlan:
    target: str
    version: str
    description: str = ""
    dependencies: List[str] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)
    download_size: int = 0
    installed_size: int = 0
    versions: Dict[str, str] = field(default_factory=dict)

    @property
    def packages(self) -> List[str]:
        return self.dependencies + [self.target]


@dataclass
class InstallResult:
    target: str
    version: str
    already_installed: bool = False
    installed: List[str] = field(default_factory=list)
    removed_conflicts: List[str] = field(default_factory=list)
    plan: Optional[InstallPlan] = None


@dataclass
class UninstallResult:
    target: str
    removed: bool
    version: str = ""
    files: List[str] = field(default_factory=list)


# ---------------- helpers ----------------

def resolve_target(index: PackageIndex, name: str, arch: str) -> str:
    """Literal package name first, then whatever package provides `name`."""
    if name in index:
        return name
    found = ContentLocator.find_in_index(index, name, arch)
    if found is None:
        raise NotFound(f"Package '{name}' not found")
    return found


def check_compatibility(pkg: Package, device: Device) -> None:
    """
    Raise unless the device API level satisfies pkg.min_api. An absent or
    empty min_api is always compatible, and the device is not queried.
    """
    if pkg.min_api is None or not pkg.min_api.strip():
        return
    try:
        required = int(pkg.min_api.strip())
    except ValueError as e:
        raise MinApiFormatError(
            f"Package '{pkg.name}' declares an invalid min_api: {pkg.min_api!r}"
        ) from e
    if required > device.api_level:
        raise IncompatibleApi(
            f"Package '{pkg.name}' requires API level {required}, device has {device.api_level}"
        )


def load_index(fetcher) -> PackageIndex:
    return PackageIndex.from_dict(fetcher.fetch_index())


# ---------------- install ----------------

class InstallTransaction:
    def __init__(
        self,
        cfg: Config,
        fetcher,
        device: Device,
        confirmer: Confirmer,
        *,
        unpacker: Callable[[bytes, object], Set[str]] = unpack,
        console: Optional[Console] = None,
    ):
        self.cfg = cfg
        self.fetcher = fetcher
        self.device = device
        self.confirmer = confirmer
        self.unpacker = unpacker
        self.console = console or Console()
        self.resolver = DependencyResolver()
        self.conflicts = ConflictHandler()
        self.state = TxState.PENDING
        self.installed: List[str] = []

    def _enter(self, state: TxState) -> None:
        logger.debug("install: %s -> %s", self.state.value, state.value)
        self.state = state

    def run(self, name: str) -> InstallResult:
        with transaction_lock(self.cfg.lock_path, self.cfg.lock_timeout):
            try:
                return self._run(name)
            except PieError as e:
                logger.info("install of %s aborted in state %s: %s", name, self.state.value, e)
                self._enter(TxState.ABORTED)
                raise

    def _run(self, name: str) -> InstallResult:
        self._enter(TxState.RESOLVING_TARGET)
        arch = self.device.arch
        index = load_index(self.fetcher)
        ledger = InstalledLedger.open(self.cfg.ledger_path)
        target = resolve_target(index, name, arch)
        pkg = index.get(target)

        if ledger.exists(target):
            self.console.print(f"Package '{target}' is already installed")
            self._enter(TxState.DONE)
            return InstallResult(target=target, version=ledger.get(target).version, already_installed=True)

        self._enter(TxState.CHECKING_COMPATIBILITY)
        check_compatibility(pkg, self.device)
        if pkg.artifact_for(arch) is None:
            raise ArchitectureUnavailable(f"Package '{target}' not available for architecture '{arch}'")

        self._enter(TxState.RESOLVING_CONFLICTS)
        staged = self.conflicts.stage(index, target, ledger)
        removed: List[str] = []
        if staged:
            self.console.print(f"{target} conflicts with installed packages: {', '.join(staged)}")
            if not self.confirmer.confirm(f"Remove {', '.join(staged)}?"):
                raise UserCancelled("Installation cancelled")
            removed = self.conflicts.apply(staged, ledger, self.cfg.install_root)

        self._enter(TxState.RESOLVING_DEPENDENCIES)
        deps = self.resolver.resolve(index, target, ledger)
        for dep in deps:
            check_compatibility(index.get(dep), self.device)

        self._enter(TxState.ACCOUNTING)
        plan = self._account(index, pkg, deps, removed, arch)

        self._enter(TxState.AWAITING_CONFIRMATION)
        self._show_plan(plan)
        if not self.confirmer.confirm("Continue?"):
            raise UserCancelled("Installation cancelled")

        self._enter(TxState.INSTALLING)
        for pkg_name in plan.packages:
            self._install_one(index.get(pkg_name), arch, ledger)
            self.installed.append(pkg_name)

        self._enter(TxState.PERSISTING)
        ledger.save()
        self._enter(TxState.DONE)
        self.console.print(f"Successfully installed {target} v{pkg.version}")
        return InstallResult(
            target=target,
            version=pkg.version,
            installed=list(self.installed),
            removed_conflicts=removed,
            plan=plan,
        )

    def _account(self, index: PackageIndex, pkg: Package, deps: List[str], removed: List[str], arch: str) -> InstallPlan:
        plan = InstallPlan(
            target=pkg.name,
            version=pkg.version,
            description=pkg.description,
            dependencies=list(deps),
            conflicts=list(removed),
        )
        for name in plan.packages:
            plan.versions[name] = index.get(name).version
            artifact = index.get(name).artifact_for(arch)
            if artifact is not None:
                plan.download_size += artifact.size
                plan.installed_size += artifact.uncompressed_size
        logger.info(
            "Plan for %s: %d package(s), download %d bytes, installed %d bytes",
            pkg.name, len(plan.packages), plan.download_size, plan.installed_size,
        )
        return plan

    def _show_plan(self, plan: InstallPlan) -> None:
        self.console.print(f"Installing [bold]{plan.target}[/bold] v{plan.version}")
        if plan.description:
            self.console.print(f"Description: {plan.description}")
        if plan.dependencies:
            table = Table("Dependency", "Version", box=None)
            for name in plan.dependencies:
                table.add_row(name, plan.versions.get(name, ""))
            self.console.print(table)
        if plan.conflicts:
            self.console.print(f"Removed conflicting packages: {', '.join(plan.conflicts)}")
        self.console.print(
            f"Download size: {human_size(plan.download_size)}, "
            f"installed size: {human_size(plan.installed_size)}"
        )

    def _install_one(self, pkg: Package, arch: str, ledger: InstalledLedger) -> None:
        artifact = pkg.artifact_for(arch)
        if artifact is None:
            raise ArchitectureUnavailable(f"Package '{pkg.name}' not available for architecture '{arch}'")

        self.console.print(f"Downloading {pkg.name}...")
        data = self.fetcher.download(artifact.url, label=pkg.name)
        actual = sha256_bytes(data)
        if actual != artifact.sha256:
            raise ChecksumMismatch(pkg.name, artifact.sha256, actual)
        logger.info("Checksum OK for %s", pkg.name)

        self.console.print(f"Installing {pkg.name}...")
        written = self.unpacker(data, self.cfg.install_root)
        missing = sorted({c.strip("/") for c in artifact.contents} - set(written))
        if missing:
            logger.warning("%s: archive did not contain declared files: %s", pkg.name, ", ".join(missing))

        ledger.add(InstalledPackage(name=pkg.name, version=pkg.version, contents=list(artifact.contents)))
        ledger.save()
        logger.info("Registered %s-%s", pkg.name, pkg.version)


# ---------------- uninstall ----------------

class UninstallTransaction:
    def __init__(self, cfg: Config, *, console: Optional[Console] = None):
        self.cfg = cfg
        self.console = console or Console()

    def run(self, name: str) -> UninstallResult:
        with transaction_lock(self.cfg.lock_path, self.cfg.lock_timeout):
            ledger = InstalledLedger.open(self.cfg.ledger_path)
            target = name if ledger.exists(name) else ContentLocator.find_in_ledger(ledger, name)
            if target is None:
                self.console.print(f"Package '{name}' is not installed")
                return UninstallResult(target=name, removed=False)

            entry, orphaned = ledger.release(target)
            self.console.print(f"Removing {target} v{entry.version}")
            files = remove_owned_files(self.cfg.install_root, orphaned)
            ledger.save()
            self.console.print(f"Successfully removed {target}")
            return UninstallResult(target=target, removed=True, version=entry.version, files=files)
