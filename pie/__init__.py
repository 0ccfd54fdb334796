"""pie - package manager for rooted Android devices."""

from .config import Config
from .errors import PieError
from .index import Artifact, Package, PackageIndex
from .ledger import InstalledLedger, InstalledPackage
from .transaction import InstallTransaction, UninstallTransaction

__version__ = "1.0.0"

__all__ = [
    "Artifact",
    "Config",
    "InstallTransaction",
    "InstalledLedger",
    "InstalledPackage",
    "Package",
    "PackageIndex",
    "PieError",
    "UninstallTransaction",
]
