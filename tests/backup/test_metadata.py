"""Tests for descriptor persistence and lookups."""

import json
import os

from code_backup.backup.metadata import MetadataStore, build_metadata, load_metadata, save_metadata
from code_backup.backup.models import BackupKind, BackupMetadata
from code_backup.backup.paths import PathMapper, metadata_path_for


def _write_entry(store_root, original, timestamp, kind=BackupKind.FILE, payload=b"x"):
    mapper = PathMapper(store_root)
    entry = mapper.entry_path_for(original, timestamp)
    os.makedirs(os.path.dirname(entry), exist_ok=True)
    if kind == BackupKind.FOLDER:
        os.makedirs(entry)
    else:
        with open(entry, "wb") as f:
            f.write(payload)
    metadata = build_metadata(original, kind, timestamp, entry)
    save_metadata(metadata, metadata_path_for(entry))
    return metadata


def test_build_metadata_file_fields(tmp_path):
    metadata = build_metadata(
        "/work/app.py", BackupKind.FILE, "20240101-000000-000", str(tmp_path / "app.py.20240101-000000-000"),
        agent_context="refactor imports"
    )

    descriptor = metadata.to_descriptor()
    assert descriptor["kind"] == "file"
    assert descriptor["original_filename"] == "app.py"
    assert descriptor["agent_context"] == "refactor imports"
    assert descriptor["emergency"] is False
    assert "original_foldername" not in descriptor
    assert "include_pattern" not in descriptor


def test_build_metadata_folder_fields(tmp_path):
    metadata = build_metadata(
        "/work/src", BackupKind.FOLDER, "20240101-000000-000", str(tmp_path / "src.20240101-000000-000"),
        include_pattern="*.py"
    )

    descriptor = metadata.to_descriptor()
    assert descriptor["kind"] == "folder"
    assert descriptor["original_foldername"] == "src"
    assert descriptor["include_pattern"] == "*.py"
    assert descriptor["exclude_pattern"] is None
    assert "original_filename" not in descriptor


def test_save_writes_pretty_utf8_json(tmp_path):
    metadata = build_metadata("/work/café.txt", BackupKind.FILE, "20240101-000000-000", str(tmp_path / "e"))
    path = tmp_path / "e.meta.json"

    save_metadata(metadata, str(path))

    text = path.read_text(encoding="utf-8")
    assert "café.txt" in text
    assert text.startswith("{\n  ")
    assert load_metadata(str(path)) == metadata


def test_load_tolerates_bad_descriptors(tmp_path):
    corrupt = tmp_path / "corrupt.meta.json"
    corrupt.write_text("{not json")
    foreign = tmp_path / "foreign.meta.json"
    foreign.write_text(json.dumps({"hello": "world"}))

    assert load_metadata(str(corrupt)) is None
    assert load_metadata(str(foreign)) is None
    assert load_metadata(str(tmp_path / "missing.meta.json")) is None


def test_descriptor_without_kind_is_classified_by_fields():
    base = {
        "original_path": "/w/src",
        "timestamp": "20240101-000000-000",
        "created_at": "2024-01-01T00:00:00+00:00",
        "backup_path": "/b/w/src.20240101-000000-000",
    }

    assert BackupMetadata.model_validate({**base, "original_foldername": "src"}).kind == BackupKind.FOLDER
    assert BackupMetadata.model_validate({**base, "exclude_pattern": "*.tmp"}).kind == BackupKind.FOLDER
    assert BackupMetadata.model_validate({**base, "original_filename": "src"}).kind == BackupKind.FILE
    assert BackupMetadata.model_validate({**base, "original_foldername": "src"}).is_folder
    assert not BackupMetadata.model_validate(base).is_folder


def test_find_file_backups_newest_first(tmp_path):
    root = str(tmp_path / "store")
    original = str(tmp_path / "work" / "a.txt")
    for ts in ("20240101-000000-002", "20240101-000000-000", "20240101-000000-001"):
        _write_entry(root, original, ts)
    _write_entry(root, str(tmp_path / "work" / "b.txt"), "20240101-000000-003")

    backups = MetadataStore(root).find_file_backups(original)

    assert [b.timestamp for b in backups] == [
        "20240101-000000-002", "20240101-000000-001", "20240101-000000-000"
    ]


def test_listing_is_idempotent(tmp_path):
    root = str(tmp_path / "store")
    original = str(tmp_path / "work" / "a.txt")
    for i in range(4):
        _write_entry(root, original, f"20240101-000000-00{i}")
    store = MetadataStore(root)

    assert store.find_file_backups(original) == store.find_file_backups(original)


def test_stale_descriptors_are_ignored(tmp_path):
    root = str(tmp_path / "store")
    original = str(tmp_path / "work" / "a.txt")
    stale = _write_entry(root, original, "20240101-000000-000")
    _write_entry(root, original, "20240101-000000-001")
    os.remove(stale.backup_path)

    backups = MetadataStore(root).find_file_backups(original)

    assert [b.timestamp for b in backups] == ["20240101-000000-001"]
    assert os.path.exists(metadata_path_for(stale.backup_path))


def test_find_folder_backups_related_paths(tmp_path):
    root = str(tmp_path / "store")
    work = tmp_path / "work"
    _write_entry(root, str(work), "20240101-000000-000", BackupKind.FOLDER)
    _write_entry(root, str(work / "src"), "20240101-000000-001", BackupKind.FOLDER)
    _write_entry(root, str(work / "src" / "pkg"), "20240101-000000-002", BackupKind.FOLDER)
    _write_entry(root, str(tmp_path / "other"), "20240101-000000-003", BackupKind.FOLDER)
    _write_entry(root, str(work / "src" / "file.txt"), "20240101-000000-004", BackupKind.FILE)
    store = MetadataStore(root)

    related = store.find_folder_backups(str(work / "src"))
    exact = store.find_folder_backups(str(work / "src"), exact=True)

    assert [b.timestamp for b in related] == [
        "20240101-000000-002", "20240101-000000-001", "20240101-000000-000"
    ]
    assert [b.timestamp for b in exact] == ["20240101-000000-001"]


def test_find_entry_respects_kind(tmp_path):
    root = str(tmp_path / "store")
    original = str(tmp_path / "work" / "thing")
    _write_entry(root, original, "20240101-000000-000", BackupKind.FOLDER)
    store = MetadataStore(root)

    assert store.find_entry(original, "20240101-000000-000", BackupKind.FOLDER) is not None
    assert store.find_entry(original, "20240101-000000-000", BackupKind.FILE) is None
    assert store.find_entry(original, "20240101-000000-009", BackupKind.FOLDER) is None


def test_missing_store_root_yields_nothing(tmp_path):
    assert MetadataStore(str(tmp_path / "nope")).find_all_descriptors() == []
