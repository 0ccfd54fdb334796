import copy
import hashlib
import io
import tarfile

import pytest
import zstandard
from rich.console import Console

from pie.config import Config
from pie.errors import NetworkFailure
from pie.index import PackageIndex


def build_archive(files):
    """Build a .tar.zst payload from {path: bytes}."""
    raw = io.BytesIO()
    with tarfile.open(fileobj=raw, mode="w") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(data))
    return zstandard.ZstdCompressor().compress(raw.getvalue())


class FakeFetcher:
    """Serves an index document and artifact blobs from memory, recording calls."""

    def __init__(self, doc, blobs):
        self.doc = doc
        self.blobs = blobs
        self.index_calls = 0
        self.downloads = []
        self.closed = False

    def fetch_index(self):
        self.index_calls += 1
        return copy.deepcopy(self.doc)

    def download(self, url, label=None):
        self.downloads.append(url)
        if url not in self.blobs:
            raise NetworkFailure(f"Failed to download {url}: 404")
        return self.blobs[url]

    def close(self):
        self.closed = True


class Repo:
    """Builds an index document plus the matching artifact blobs."""

    def __init__(self):
        self.packages = {}
        self.blobs = {}

    def add(self, name, version="1.0", files=None, deps=(), conflicts=(), min_api=None,
            archs=("arm64-v8a",), sha256=None, description=""):
        files = files if files is not None else {f"bin/{name}": name.encode()}
        blob = build_archive(files)
        url = f"https://repo.test/{name}-{version}.tar.zst"
        self.blobs[url] = blob
        artifact = {
            "url": url,
            "sha256": sha256 or hashlib.sha256(blob).hexdigest(),
            "size": len(blob),
            "uncompressed_size": sum(len(d) for d in files.values()),
            "contents": list(files),
        }
        entry = {
            "version": version,
            "description": description,
            "dependencies": list(deps),
            "conflicts": list(conflicts),
            "architectures": {arch: dict(artifact) for arch in archs},
        }
        if min_api is not None:
            entry["min_api"] = min_api
        self.packages[name] = entry
        return entry

    def doc(self):
        return {"packages": self.packages}

    def index(self):
        return PackageIndex.from_dict(self.doc())

    def fetcher(self):
        return FakeFetcher(self.doc(), self.blobs)


@pytest.fixture
def repo():
    return Repo()


@pytest.fixture
def make_archive():
    return build_archive


@pytest.fixture
def cfg(tmp_path):
    return Config.from_mapping({
        "global": {
            "install_root": str(tmp_path / "root"),
            "state_dir": str(tmp_path / "state"),
            "lock_timeout": 1,
        },
        "device": {"arch": "arm64-v8a", "api_level": 30},
        "fetch": {"progress": False},
    })


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=120)


def installed_files(root):
    """Every regular file under root, as root-relative posix paths."""
    if not root.exists():
        return set()
    return {p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file() or p.is_symlink()}


@pytest.fixture
def files_under():
    return installed_files
