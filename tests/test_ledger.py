import json

import pytest

from pie.errors import FilesystemFailure, LockTimeout
from pie.ledger import InstalledLedger, InstalledPackage, remove_owned_files, transaction_lock


def test_missing_file_is_empty(tmp_path):
    ledger = InstalledLedger.open(tmp_path / "installed.json")
    assert len(ledger) == 0
    assert ledger.names() == []


def test_save_and_reload(tmp_path):
    path = tmp_path / "state" / "installed.json"
    ledger = InstalledLedger(path)
    ledger.add(InstalledPackage("curl", "8.1", ["usr/bin/curl"]))
    ledger.add(InstalledPackage("busybox", "1.36", ["bin/busybox"]))
    ledger.save()

    doc = json.loads(path.read_text())
    assert list(doc["packages"]) == ["busybox", "curl"]
    assert doc["packages"]["curl"] == {"name": "curl", "version": "8.1", "contents": ["usr/bin/curl"]}

    again = InstalledLedger.open(path)
    assert again.names() == ["busybox", "curl"]
    assert again.get("curl").contents == ["usr/bin/curl"]


def test_malformed_ledger(tmp_path):
    path = tmp_path / "installed.json"
    path.write_text("{not json")
    with pytest.raises(FilesystemFailure):
        InstalledLedger.open(path)
    path.write_text("[]")
    with pytest.raises(FilesystemFailure):
        InstalledLedger.open(path)


def test_file_owner_and_remove(tmp_path):
    ledger = InstalledLedger(tmp_path / "installed.json")
    ledger.add(InstalledPackage("curl", "8.1", ["usr/bin/curl"]))
    assert ledger.file_owner("/usr/bin/curl") == ["curl"]
    assert ledger.file_owner("usr/bin/wget") == []

    rec = ledger.remove("curl")
    assert rec.version == "8.1"
    assert "curl" not in ledger
    assert ledger.file_owner("usr/bin/curl") == []
    with pytest.raises(KeyError):
        ledger.remove("curl")


def test_replacing_an_entry_reindexes(tmp_path):
    ledger = InstalledLedger(tmp_path / "installed.json")
    ledger.add(InstalledPackage("tool", "1", ["bin/old"]))
    ledger.add(InstalledPackage("tool", "2", ["bin/new"]))
    assert ledger.file_owner("bin/old") == []
    assert ledger.file_owner("bin/new") == ["tool"]


def test_remove_owned_files_removes_only_listed(tmp_path):
    root = tmp_path / "root"
    (root / "bin").mkdir(parents=True)
    (root / "bin" / "a").write_text("a")
    (root / "bin" / "b").write_text("b")
    (root / "lib").mkdir()

    removed = remove_owned_files(root, ["bin/a", "bin/missing", "lib", "bin"])
    assert removed == ["bin/a", "lib"]
    assert (root / "bin" / "b").exists()
    assert (root / "bin").is_dir()
    assert not (root / "lib").exists()


def test_remove_owned_files_unlinks_symlinks_only(tmp_path):
    root = tmp_path / "root"
    outside = tmp_path / "outside.txt"
    outside.write_text("keep")
    root.mkdir()
    (root / "link").symlink_to(outside)

    assert remove_owned_files(root, ["link"]) == ["link"]
    assert outside.exists()


def test_remove_owned_files_refuses_escape(tmp_path):
    root = tmp_path / "root"
    root.mkdir()
    victim = tmp_path / "victim"
    victim.write_text("x")
    with pytest.raises(FilesystemFailure):
        remove_owned_files(root, ["../victim"])
    assert victim.exists()


def test_transaction_lock_is_exclusive(tmp_path):
    lock = tmp_path / "pie.lock"
    with transaction_lock(lock, timeout=5):
        with pytest.raises(LockTimeout):
            with transaction_lock(lock, timeout=0.2, poll=0.05):
                pass
    with transaction_lock(lock, timeout=0.2):
        pass


def test_release_returns_only_unshared_paths(tmp_path):
    ledger = InstalledLedger(tmp_path / "installed.json")
    ledger.add(InstalledPackage("busybox", "1.36", ["bin/sh", "/bin/busybox"]))
    ledger.add(InstalledPackage("mksh", "59", ["bin/sh"]))

    rec, orphaned = ledger.release("busybox")

    assert rec.name == "busybox"
    assert orphaned == ["/bin/busybox"]
    assert ledger.names() == ["mksh"]
    assert ledger.release("mksh")[1] == ["bin/sh"]


def test_record_name_comes_from_its_key(tmp_path):
    path = tmp_path / "installed.json"
    path.write_text(json.dumps({"packages": {
        "curl": {"name": "wget", "version": "8.1", "contents": ["usr/bin/curl"]},
    }}))
    ledger = InstalledLedger.open(path)
    assert [p.name for p in ledger.packages()] == ["curl"]
    assert ledger.exists("curl")
    assert ledger.file_owner("usr/bin/curl") == ["curl"]
