import pytest

from pie.errors import IndexFormatError
from pie.index import PackageIndex


def test_parses_full_entry():
    index = PackageIndex.from_dict({"packages": {"curl": {
        "version": "8.1",
        "min_api": 21,
        "dependencies": ["zlib"],
        "conflicts": ["wget"],
        "description": "transfer tool",
        "homepage": "https://curl.se",
        "license": "MIT",
        "architectures": {"arm64-v8a": {
            "url": "https://repo.test/curl.tar.zst",
            "sha256": "ABCDEF",
            "size": 10,
            "uncompressed_size": 20,
            "contents": ["usr/bin/curl"],
        }},
    }}})
    pkg = index.get("curl")
    assert pkg.version == "8.1"
    assert pkg.min_api == "21"
    assert pkg.dependencies == ("zlib",)
    assert pkg.conflicts == ("wget",)
    assert pkg.license == "MIT"
    artifact = pkg.artifact_for("arm64-v8a")
    assert artifact.sha256 == "ABCDEF"
    assert artifact.contents == ("usr/bin/curl",)
    assert pkg.artifact_for("x86") is None


def test_optional_fields_default():
    index = PackageIndex.from_dict({"packages": {"a": {"version": "1"}}})
    pkg = index.get("a")
    assert pkg.min_api is None
    assert pkg.dependencies == ()
    assert pkg.architectures == {}


def test_views_are_sorted():
    index = PackageIndex.from_dict({"packages": {n: {"version": "1"} for n in ("c", "a", "b")}})
    assert index.names() == ["a", "b", "c"]
    assert [p.name for p in index] == ["a", "b", "c"]
    assert len(index) == 3
    assert "b" in index


@pytest.mark.parametrize("doc", [
    [],
    {},
    {"packages": []},
    {"packages": {"a": "nope"}},
    {"packages": {"a": {}}},
    {"packages": {"a": {"version": "1", "dependencies": "b"}}},
    {"packages": {"a": {"version": "1", "architectures": {"x86": {"sha256": "00"}}}}},
    {"packages": {"a": {"version": "1", "architectures": {"x86": {"url": "u", "sha256": "00", "size": "big"}}}}},
])
def test_malformed_documents(doc):
    with pytest.raises(IndexFormatError):
        PackageIndex.from_dict(doc)


def test_search_by_name_description_and_content(repo):
    repo.add("curl", description="Command line HTTP client", files={"usr/bin/curl": b"c"})
    repo.add("wget", description="Retrieves files over HTTP", files={"bin/wget": b"w"})
    repo.add("busybox", description="Swiss army knife", files={"bin/busybox": b"b", "bin/httpd": b"h"})
    index = repo.index()

    assert [p.name for p in index.search("cur")] == ["curl"]
    assert [p.name for p in index.search("http")] == ["curl", "wget"]
    assert [p.name for p in index.search("httpd", arch="arm64-v8a")] == ["busybox"]
    assert index.search("httpd", arch="x86") == []
    assert [p.name for p in index.search(None)] == ["busybox", "curl", "wget"]
    assert index.search("nothing-like-this") == []
