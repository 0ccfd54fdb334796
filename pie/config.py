#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
config.py
Config loader/validator for pie.

Responsibilities:
- Load the YAML configuration file (path from --config, PIE_CONF or the defaults).
- Deep-merge it over the built-in defaults.
- Expand environment variables (~ and ${VAR}) in path entries.
- Coerce network timeouts and lock timeout to positive numbers.
- Provide convenient access via Config.get(...) and properties.
- Save the merged config atomically when asked.

Usage:
    cfg = Config.load('/data/adb/pie/config.yaml')      # explicit file
    cfg = Config.load()                                 # PIE_CONF or default locations
    cfg = Config.from_mapping({'global': {...}})        # in-memory (tests)
    cfg.get('fetch', 'read_timeout')
"""

from __future__ import annotations
import copy
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError
from .utils import write_atomic

# -----------------------
# Defaults
# -----------------------
REPO_URL = "https://raw.githubusercontent.com/andstore-org/andstore-repo/main/repo.json"

DEFAULT_CONFIG: Dict[str, Any] = {
    'global': {
        'install_root': '/data/local/andstore',
        'state_dir': '/data/adb/pie',
        'ledger_file': 'installed.json',
        'lock_file': 'pie.lock',
        'lock_timeout': 30,
    },
    'repo': {
        'url': REPO_URL,
    },
    'fetch': {
        'connect_timeout': 10,
        'read_timeout': 60,
        'chunk_size': 65536,
        'progress': True,
    },
    'device': {
        # When set, these override the getprop queries
        'arch': None,
        'api_level': None,
    },
    'logging': {
        'level': 'WARNING',
        'logfile': None,
        'console_colors': True,
    },
}

DEFAULT_CONFIG_PATHS = [
    Path('/data/adb/pie/config.yaml'),
    Path.home() / '.config' / 'pie' / 'config.yaml',
]

# -----------------------
# Utilities
# -----------------------
def _expand_path(val: Any) -> Any:
    """Expand ~ and environment variables in path-like strings."""
    if not isinstance(val, str):
        return val
    return os.path.expanduser(os.path.expandvars(val))


def _deep_update(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Recursively update base with override and return new dict.
    Dict values are merged, non-dict override replaces.
    """
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, Mapping):
            result[k] = _deep_update(result[k], v)
        else:
            result[k] = v
    return result


def _positive_number(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default

# -----------------------
# Config dataclass
# -----------------------
@dataclass
class Config:
    raw: Dict[str, Any] = field(default_factory=lambda: copy.deepcopy(DEFAULT_CONFIG))
    source_path: Optional[Path] = None

    @classmethod
    def load(cls, path: Optional[str] = None) -> 'Config':
        """
        Load configuration.
        Resolution order:
          1. explicit `path` argument,
          2. environment variable PIE_CONF,
          3. /data/adb/pie/config.yaml,
          4. ~/.config/pie/config.yaml,
          5. fallback to DEFAULT_CONFIG
        """
        cfg_path: Optional[Path] = None
        if path:
            cfg_path = Path(path)
            if not cfg_path.exists():
                raise ConfigError(f"config file not found: {cfg_path}")
        else:
            envp = os.environ.get('PIE_CONF')
            if envp:
                cfg_path = Path(envp)
            else:
                cfg_path = next((p for p in DEFAULT_CONFIG_PATHS if p.exists()), None)

        raw_user: Dict[str, Any] = {}
        if cfg_path and cfg_path.exists():
            try:
                raw_user = yaml.safe_load(cfg_path.read_text(encoding='utf-8')) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"failed to parse config file {cfg_path}: {e}") from e
            if not isinstance(raw_user, dict):
                raise ConfigError(f"config file {cfg_path} must contain a mapping")

        return cls.from_mapping(raw_user, source_path=cfg_path if raw_user else None)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], source_path: Optional[Path] = None) -> 'Config':
        cfg = cls(raw=_deep_update(copy.deepcopy(DEFAULT_CONFIG), data), source_path=source_path)
        cfg._normalize()
        return cfg

    def _normalize(self) -> None:
        g = self.raw.setdefault('global', {})
        for k in ('install_root', 'state_dir'):
            value = g.get(k) or DEFAULT_CONFIG['global'][k]
            g[k] = _expand_path(str(value))
        g['lock_timeout'] = _positive_number(g.get('lock_timeout'), DEFAULT_CONFIG['global']['lock_timeout'])

        f = self.raw.setdefault('fetch', {})
        for k in ('connect_timeout', 'read_timeout'):
            f[k] = _positive_number(f.get(k), DEFAULT_CONFIG['fetch'][k])
        f['chunk_size'] = int(_positive_number(f.get('chunk_size'), DEFAULT_CONFIG['fetch']['chunk_size']))
        f['progress'] = bool(f.get('progress', True))

        logs = self.raw.setdefault('logging', {})
        if logs.get('logfile'):
            logs['logfile'] = _expand_path(str(logs['logfile']))

    # Convenience getters
    def get(self, *keys, default: Any = None) -> Any:
        """
        cfg.get('global', 'install_root') or cfg.get('fetch', 'read_timeout')
        """
        node = self.raw
        for k in keys:
            if isinstance(node, dict) and k in node:
                node = node[k]
            else:
                return default
        return node

    @property
    def install_root(self) -> Path:
        return Path(self.get('global', 'install_root'))

    @property
    def state_dir(self) -> Path:
        return Path(self.get('global', 'state_dir'))

    @property
    def ledger_path(self) -> Path:
        return self.state_dir / self.get('global', 'ledger_file', default='installed.json')

    @property
    def lock_path(self) -> Path:
        return self.state_dir / self.get('global', 'lock_file', default='pie.lock')

    @property
    def lock_timeout(self) -> float:
        return self.get('global', 'lock_timeout')

    @property
    def repo_url(self) -> str:
        return self.get('repo', 'url')

    @property
    def timeouts(self) -> Tuple[float, float]:
        """(connect, read) pair passed to requests."""
        return (self.get('fetch', 'connect_timeout'), self.get('fetch', 'read_timeout'))

    def save(self, target: Optional[str] = None) -> Path:
        target_path = Path(target) if target else (self.source_path or DEFAULT_CONFIG_PATHS[-1])
        target_path.parent.mkdir(parents=True, exist_ok=True)
        data = yaml.safe_dump(self.raw, default_flow_style=False, sort_keys=False)
        write_atomic(target_path, data, mode=0o644)
        return target_path

    def pretty(self) -> str:
        return json.dumps(self.raw, indent=2, ensure_ascii=False)


if __name__ == '__main__':
    import argparse
    p = argparse.ArgumentParser(prog='pie-config', description='Load and print the resolved pie config')
    p.add_argument('--config', '-c', help='config file path (yaml)')
    p.add_argument('--save-as', '-s', help='save merged config to path')
    args = p.parse_args()

    cfg = Config.load(args.config)
    print(cfg.pretty())
    if args.save_as:
        print(f"Saved merged config to {cfg.save(args.save_as)}")
