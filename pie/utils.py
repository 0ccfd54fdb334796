#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
utils.py
Utility helpers for pie.

Responsibilities:
- Safe subprocess execution (command logging, output capture).
- File handling (atomic writes, directory creation).
- Checksums (SHA256 over in-memory payloads).
- Human readable sizes for the install plan.
"""

from __future__ import annotations
import hashlib
import os
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .log import get_logger

logger = get_logger(__name__)

# -----------------------
# Safe execution
# -----------------------
class CommandError(Exception):
    def __init__(self, cmd: List[str], returncode: int, stdout: str, stderr: str):
        self.cmd = cmd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"Command {' '.join(cmd)} failed with code {returncode}")


def safe_run(
    cmd: List[str],
    cwd: Optional[str] = None,
    env: Optional[dict] = None,
    check: bool = True,
    timeout: Optional[float] = None,
) -> Tuple[int, str, str]:
    """
    Run a command and capture its output.
    Args:
        cmd: argv list
        cwd: working directory
        env: extra environment variables (merged with os.environ)
        check: raise CommandError if non-zero
        timeout: seconds before the child is killed
    Returns:
        (returncode, stdout, stderr)
    """
    logger.debug("exec: %s", " ".join(cmd))

    merged_env = os.environ.copy()
    if env:
        merged_env.update(env)

    try:
        proc = subprocess.run(
            cmd,
            cwd=cwd,
            env=merged_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=False,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise CommandError(list(cmd), 127, "", str(e)) from e
    except subprocess.TimeoutExpired as e:
        raise CommandError(list(cmd), -1, "", f"timed out after {timeout}s") from e

    if check and proc.returncode != 0:
        raise CommandError(list(cmd), proc.returncode, proc.stdout, proc.stderr)

    return (proc.returncode, proc.stdout, proc.stderr)

# -----------------------
# Files
# -----------------------
def ensure_dir(path: Union[str, Path], mode: int = 0o755) -> None:
    p = Path(path)
    if not p.exists():
        p.mkdir(parents=True, mode=mode, exist_ok=True)


def write_atomic(path: Union[str, Path], data: Union[str, bytes], mode: int = 0o644) -> None:
    """
    Write a file atomically (temp file in the same directory, then rename).
    """
    p = Path(path)
    tmp_fd, tmp_name = tempfile.mkstemp(dir=str(p.parent), prefix=f".{p.name}.")
    try:
        if isinstance(data, bytes):
            with os.fdopen(tmp_fd, "wb") as f:
                f.write(data)
        else:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
                f.write(data)
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, p)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

# -----------------------
# Checksums
# -----------------------
def sha256_bytes(data: bytes) -> str:
    h = hashlib.sha256()
    h.update(data)
    return h.hexdigest()

# -----------------------
# Formatting
# -----------------------
def human_size(num: int) -> str:
    size = float(num)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if size < 1024 or unit == "GiB":
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GiB"
