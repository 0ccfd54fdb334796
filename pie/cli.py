# pie/cli.py
# -*- coding: utf-8 -*-
"""
Command-line interface for pie.

    pie install <name> [-y|--no-confirm]   (alias: add)
    pie uninstall <name>                   (alias: remove)
    pie update
    pie search [query]
    pie list
    pie owns <path>

Errors are printed as "Error: <message>" on stderr with a non-zero exit code.
"""

from __future__ import annotations

import argparse
import sys
from typing import Iterable, Optional

from rich.console import Console
from rich.table import Table

from .config import Config
from .confirm import AutoConfirm, ConsoleConfirm
from .device import Device
from .errors import NotFound, PieError
from .fetcher import RepoFetcher
from .ledger import InstalledLedger
from .locator import ContentLocator
from .log import get_logger, init_logging, set_level
from .transaction import InstallTransaction, UninstallTransaction, load_index

logger = get_logger(__name__)


def _build_cli_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pie", description="Package manager for rooted Android devices")
    p.add_argument("--config", "-c", help="Config file (yaml)", default=None)
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging on stderr")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_install = sub.add_parser("install", aliases=["add"], help="Install a package (by name or provided file)")
    p_install.add_argument("package", help="Package name or command/file it provides")
    p_install.add_argument("-y", "--no-confirm", action="store_true", help="Do not ask for confirmation")

    p_rm = sub.add_parser("uninstall", aliases=["remove"], help="Uninstall a package")
    p_rm.add_argument("package", help="Package name or a file it owns")

    sub.add_parser("update", help="Fetch and validate the repository index")

    p_search = sub.add_parser("search", help="Search the repository")
    p_search.add_argument("query", nargs="?", default=None, help="Name, description or file")

    sub.add_parser("list", help="List installed packages")

    p_owns = sub.add_parser("owns", help="Show which installed package owns a file")
    p_owns.add_argument("path", help="File path or command name")

    return p


# ---------------- commands ----------------

def cmd_install(cfg: Config, args, console: Console) -> int:
    confirmer = AutoConfirm() if args.no_confirm else ConsoleConfirm(console)
    fetcher = RepoFetcher(cfg)
    try:
        tx = InstallTransaction(cfg, fetcher, Device(cfg), confirmer, console=console)
        tx.run(args.package)
    finally:
        fetcher.close()
    return 0


def cmd_uninstall(cfg: Config, args, console: Console) -> int:
    UninstallTransaction(cfg, console=console).run(args.package)
    return 0


def cmd_update(cfg: Config, args, console: Console) -> int:
    console.print("Updating package repository...")
    fetcher = RepoFetcher(cfg)
    try:
        index = load_index(fetcher)
    finally:
        fetcher.close()
    console.print(f"Repository updated successfully ({len(index)} packages)")
    return 0


def cmd_search(cfg: Config, args, console: Console) -> int:
    fetcher = RepoFetcher(cfg)
    try:
        index = load_index(fetcher)
    finally:
        fetcher.close()
    arch = Device(cfg).arch if args.query else None
    results = index.search(args.query, arch=arch)
    if not results:
        console.print("No packages found")
        return 0
    table = Table("Name", "Version", "Description")
    for pkg in results:
        table.add_row(pkg.name, pkg.version, pkg.description)
    console.print(table)
    return 0


def cmd_list(cfg: Config, args, console: Console) -> int:
    ledger = InstalledLedger.open(cfg.ledger_path)
    if not len(ledger):
        console.print("No packages installed")
        return 0
    table = Table("Name", "Version", "Files", title="Installed packages")
    for entry in ledger.packages():
        table.add_row(entry.name, entry.version, str(len(entry.contents)))
    console.print(table)
    return 0


def cmd_owns(cfg: Config, args, console: Console) -> int:
    ledger = InstalledLedger.open(cfg.ledger_path)
    owner = ContentLocator.find_in_ledger(ledger, args.path)
    if owner is None:
        raise NotFound(f"No installed package owns '{args.path}'")
    console.print(owner)
    return 0


COMMANDS = {
    "install": cmd_install,
    "add": cmd_install,
    "uninstall": cmd_uninstall,
    "remove": cmd_uninstall,
    "update": cmd_update,
    "search": cmd_search,
    "list": cmd_list,
    "owns": cmd_owns,
}


def main(argv: Optional[Iterable[str]] = None, console: Optional[Console] = None) -> int:
    parser = _build_cli_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    console = console or Console()
    err = Console(stderr=True)

    try:
        cfg = Config.load(args.config)
        init_logging(cfg.get("logging"))
        if args.verbose:
            set_level("DEBUG")
        return COMMANDS[args.cmd](cfg, args, console)
    except KeyboardInterrupt:
        err.print("Interrupted")
        return 130
    except PieError as e:
        logger.debug("%s failed", args.cmd, exc_info=True)
        err.print(f"Error: {e}", markup=False, highlight=False, soft_wrap=True)
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())
