"""
device.py
Device property queries (architecture and platform API level).

Values come from `getprop` unless the 'device' config section overrides them.
Both are queried lazily and at most once per Device instance.
"""

from __future__ import annotations
from typing import Callable, Optional

from .config import Config
from .errors import ArchitectureUnsupported, DeviceError
from .log import get_logger
from .utils import CommandError, safe_run

logger = get_logger(__name__)

SUPPORTED_ARCHS = ("arm64-v8a", "armeabi-v7a", "x86", "x86_64", "riscv64")

ARCH_PROP = "ro.product.cpu.abi"
API_PROP = "ro.build.version.sdk"


def getprop(prop: str) -> str:
    _, out, _ = safe_run(["getprop", prop], timeout=10)
    return out.strip()


class Device:
    def __init__(self, cfg: Config, runner: Callable[[str], str] = getprop):
        self.cfg = cfg
        self._runner = runner
        self._arch: Optional[str] = None
        self._api_level: Optional[int] = None

    def _query(self, prop: str) -> str:
        try:
            return self._runner(prop)
        except CommandError as e:
            raise DeviceError(f"Failed to query device property {prop}: {e}") from e

    @property
    def arch(self) -> str:
        if self._arch is None:
            override = self.cfg.get('device', 'arch')
            arch = str(override or self._query(ARCH_PROP)).strip()
            if arch not in SUPPORTED_ARCHS:
                raise ArchitectureUnsupported(f"Unsupported architecture: {arch}")
            logger.debug("Device architecture: %s", arch)
            self._arch = arch
        return self._arch

    @property
    def api_level(self) -> int:
        if self._api_level is None:
            override = self.cfg.get('device', 'api_level')
            raw = str(override) if override is not None else self._query(API_PROP)
            try:
                self._api_level = int(raw.strip())
            except ValueError as e:
                raise DeviceError(f"Device API level is not an integer: {raw!r}") from e
            logger.debug("Device API level: %d", self._api_level)
        return self._api_level
