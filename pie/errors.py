# pie/errors.py
"""
Exception hierarchy for pie.

Every failure a command can hit is a PieError subclass; the CLI is the only
place that catches them, prints the message on stderr and exits non-zero.
"""

from __future__ import annotations


class PieError(Exception):
    exit_code = 1


class NotFound(PieError):
    pass


class ArchitectureUnsupported(PieError):
    pass


class ArchitectureUnavailable(PieError):
    pass


class IncompatibleApi(PieError):
    pass


class MinApiFormatError(PieError):
    pass


class ChecksumMismatch(PieError):
    def __init__(self, name: str, expected: str, actual: str):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum verification failed for package '{name}' (expected {expected}, got {actual})"
        )


class NetworkFailure(PieError):
    pass


class IndexFormatError(PieError):
    pass


class FilesystemFailure(PieError):
    pass


class LockTimeout(FilesystemFailure):
    pass


class UserCancelled(PieError):
    pass


class DeviceError(PieError):
    pass


class ConfigError(PieError):
    pass
