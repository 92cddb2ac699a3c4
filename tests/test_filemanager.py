import io
import os
import uuid

import pytest

from gocrack.filemanager import (
    SYSTEM_USER_UUID,
    CannotImportError,
    EngineFile,
    EngineFileType,
    FileKind,
    FileManager,
    TaskFile,
    split_file_path,
)
from gocrack.filemanager_config import FileManagerConfig


class FakeEngineFileTxn:
    def __init__(self, committed):
        self.doc = None
        self.saved = False
        self._committed = committed

    def save_engine_file(self, engine_file):
        self.doc = engine_file
        self.saved = False

    def add_entitlement(self, engine_file, user_id):
        return None

    def rollback(self):
        self.doc = None
        self.saved = False

    def commit(self):
        self.saved = True
        self._committed.append(self.doc)


class FakeStorage:
    def __init__(self):
        self.committed = []
        self.deleted_engine = []
        self.deleted_task = []

    def new_engine_file_transaction(self):
        return FakeEngineFileTxn(self.committed)

    def delete_engine_file(self, file_id):
        self.deleted_engine.append(file_id)

    def delete_task_file(self, file_id):
        self.deleted_task.append(file_id)


@pytest.fixture
def dirs(tmp_path):
    paths = {name: tmp_path / name for name in ("task", "engine", "temp", "import")}
    for path in paths.values():
        path.mkdir()
    return paths


@pytest.fixture
def stor():
    return FakeStorage()


@pytest.fixture
def manager(dirs, stor):
    cfg = FileManagerConfig(
        task_upload_path=str(dirs["task"]),
        engine_file_path=str(dirs["engine"]),
        temp_path=str(dirs["temp"]),
        import_path=str(dirs["import"]),
    )
    return FileManager(stor, cfg)


@pytest.mark.parametrize(
    "root, initial, expected",
    [
        (
            "/tmp/hello",
            "c9c435d08cda8bdcedf0e61c229aebc89e44cf21",
            "/tmp/hello/c9/c4/35/d0/8c/da/8b/c9c435d08cda8bdcedf0e61c229aebc89e44cf21",
        ),
        (
            "/",
            "5d41402abc4b2a76b9719d911017c592",
            "/5d/41/40/2a/bc/4b/2a/5d41402abc4b2a76b9719d911017c592",
        ),
        (
            "/tmp/",
            "d78ddfec-5e12-4238-a46b-8e218d4cfcbe",
            "/tmp/d7/8d/df/ec/5e/12/42/d78ddfec5e124238a46b8e218d4cfcbe",
        ),
    ],
)
def test_split_file_path(root, initial, expected):
    assert split_file_path(root, initial) == expected


def test_split_file_path_rejects_short_names():
    with pytest.raises(ValueError):
        split_file_path("/tmp", "abc")


def test_save_engine_file(manager, dirs):
    file_uuid = str(uuid.uuid4())
    src = io.BytesIO(b"helloworld\nthisisatest")
    resp = manager.save_file(src, "testing", file_uuid, EngineFileType.DICTIONARY)

    assert resp.sha1 == "fc4c80ef680e79f2b102802cdca469b0e23eadc8"
    assert resp.number_of_lines == 2
    assert resp.size == len(b"helloworld\nthisisatest")
    assert resp.saved_to == split_file_path(str(dirs["engine"]), file_uuid)
    with open(resp.saved_to, "rb") as fh:
        assert fh.read() == b"helloworld\nthisisatest"
    assert os.listdir(dirs["temp"]) == []


def test_save_task_file_goes_to_task_path(manager, dirs):
    file_uuid = str(uuid.uuid4())
    resp = manager.save_file(io.BytesIO(b"hash"), "hashes", file_uuid, FileKind.TASK)
    assert resp.saved_to.startswith(str(dirs["task"]))
    assert os.path.isfile(resp.saved_to)


def test_save_file_unknown_kind(manager):
    with pytest.raises(ValueError, match="unknown filetype"):
        manager.save_file(io.BytesIO(b"x"), "x", str(uuid.uuid4()), "bogus")


def test_delete_engine_file(manager, stor):
    resp = manager.save_file(io.BytesIO(b"data"), "d", str(uuid.uuid4()), FileKind.ENGINE)
    assert os.path.exists(resp.saved_to)
    doc = EngineFile(file_id="engine-1", saved_at=resp.saved_to)
    result = manager.delete_file(doc)
    assert result is None
    assert stor.deleted_engine == ["engine-1"]
    assert not os.path.exists(resp.saved_to)


def test_delete_task_file(manager, stor):
    resp = manager.save_file(io.BytesIO(b"data"), "d", str(uuid.uuid4()), FileKind.TASK)
    assert os.path.exists(resp.saved_to)
    result = manager.delete_file(TaskFile(file_id="task-1", saved_at=resp.saved_to))
    assert result is None
    assert stor.deleted_task == ["task-1"]
    assert not os.path.exists(resp.saved_to)


def test_delete_unknown_document(manager):
    with pytest.raises(TypeError, match="unknown filetype"):
        manager.delete_file("not a document")


def test_import_directory(manager, dirs, stor):
    (dirs["import"] / "words.dict").write_bytes(b"a\nb\nc")
    (dirs["import"] / "notes.txt").write_bytes(b"ignored")

    imported = manager.import_directory()

    assert len(imported) == 1
    record = imported[0]
    assert record.file_name == "words.dict"
    assert record.file_type is EngineFileType.DICTIONARY
    assert record.number_of_entries == 3
    assert record.file_size == 5
    assert record.is_shared is True
    assert record.uploaded_by == "System"
    assert record.uploaded_by_uuid == SYSTEM_USER_UUID
    assert record.saved_at.startswith(str(dirs["engine"]))
    assert os.path.isfile(record.saved_at)
    assert stor.committed == [record]
    assert not (dirs["import"] / "words.dict").exists()
    assert (dirs["import"] / "notes.txt").exists()


def test_refresh_imports_rules_and_masks(manager, dirs, stor):
    (dirs["import"] / "best.rule").write_bytes(b":")
    (dirs["import"] / "set.hcmask").write_bytes(b"?d?d")
    imported = manager.refresh()
    assert sorted(r.file_type for r in imported) == [EngineFileType.RULES, EngineFileType.MASKS]
    assert len(stor.committed) == 2


def test_import_without_import_path(dirs, stor):
    cfg = FileManagerConfig(
        task_upload_path=str(dirs["task"]),
        engine_file_path=str(dirs["engine"]),
        temp_path=str(dirs["temp"]),
    )
    with pytest.raises(CannotImportError):
        FileManager(stor, cfg).import_directory()