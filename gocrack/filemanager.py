"""Saving uploaded files to disk and recording their metadata."""

from __future__ import annotations

import enum
import hashlib
import logging
import os
import tempfile
import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import BinaryIO, Protocol

from gocrack.filemanager_config import FileManagerConfig
from gocrack.size_recorder import WriteSizeLineRecorder

__all__ = [
    "EngineFileType",
    "FileKind",
    "EngineFile",
    "TaskFile",
    "FileSaveResponse",
    "CannotImportError",
    "FileManager",
    "split_file_path",
    "SYSTEM_USER_UUID",
]

log = logging.getLogger(__name__)

SYSTEM_USER_UUID = "b2c9e661-74e5-4ba3-b1ce-624894e85622"

_CHUNK_SIZE = 64 * 1024
_SPLIT_DEPTH = 7


class EngineFileType(enum.IntEnum):
    """The kind of shared engine file."""

    DICTIONARY = 0
    RULES = 1
    MASKS = 2


class FileKind(enum.Enum):
    """Which storage area a file is saved into."""

    TASK = "task"
    ENGINE = "engine"


_EXTENSIONS: dict[str, EngineFileType] = {
    ".hcmask": EngineFileType.MASKS,
    ".masks": EngineFileType.MASKS,
    ".dict": EngineFileType.DICTIONARY,
    ".dictionary": EngineFileType.DICTIONARY,
    ".rule": EngineFileType.RULES,
    ".rules": EngineFileType.RULES,
}


@dataclass
class EngineFile:
    """Metadata of a shared engine file."""

    file_id: str
    file_name: str = ""
    file_size: int = 0
    uploaded_by: str = ""
    uploaded_by_uuid: str = ""
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    file_type: EngineFileType = EngineFileType.DICTIONARY
    number_of_entries: int = 0
    is_shared: bool = False
    sha1_hash: str = ""
    saved_at: str = ""


@dataclass
class TaskFile:
    """Metadata of a file uploaded for a task."""

    file_id: str
    file_name: str = ""
    sha1_hash: str = ""
    saved_at: str = ""


@dataclass(frozen=True)
class FileSaveResponse:
    """What was learned while saving a file."""

    size: int
    saved_to: str
    number_of_lines: int
    sha1: str


class CannotImportError(Exception):
    """Raised when an import is requested but no import directory is configured."""

    def __init__(self) -> None:
        super().__init__(
            "filemanager: cannot import because import_directory is not set in the config"
        )


class EngineFileTransaction(Protocol):
    def save_engine_file(self, engine_file: EngineFile) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class FileManagerStorage(Protocol):
    def new_engine_file_transaction(self) -> EngineFileTransaction: ...

    def delete_engine_file(self, file_id: str) -> None: ...

    def delete_task_file(self, file_id: str) -> None: ...


def split_file_path(root_path: str, filename: str) -> str:
    """Nest a file under seven two-character directories taken from its name."""
    filename = filename.replace("-", "")
    if len(filename) < _SPLIT_DEPTH * 2:
        raise ValueError(f"file name {filename!r} is too short to split")
    parts = [filename[i : i + 2] for i in range(0, _SPLIT_DEPTH * 2, 2)]
    return os.path.join(root_path, *parts, filename)


def _walk_files(top: str) -> Iterator[str]:
    for root, dirs, files in os.walk(top):
        dirs.sort()
        for name in sorted(files):
            yield os.path.join(root, name)


class FileManager:
    """Saves, deletes and imports files on behalf of the server."""

    def __init__(self, stor: FileManagerStorage, cfg: FileManagerConfig) -> None:
        self._stor = stor
        self._cfg = cfg

    def refresh(self) -> list[EngineFile]:
        """Import any new files found in the import directory."""
        return self.import_directory()

    def _root_for(self, kind: FileKind | EngineFileType) -> str:
        if kind is FileKind.TASK:
            return self._cfg.task_upload_path
        if kind is FileKind.ENGINE or isinstance(kind, EngineFileType):
            return self._cfg.engine_file_path
        raise ValueError(f"unknown filetype `{kind}`")

    def save_file(
        self,
        src: BinaryIO,
        filename: str,
        file_uuid: str,
        kind: FileKind | EngineFileType,
    ) -> FileSaveResponse:
        """Copy the stream to its final place and return its size, line count and SHA1."""
        root = self._root_for(kind)

        fd, temp_name = tempfile.mkstemp(dir=self._cfg.temp_path or None)
        recorder = WriteSizeLineRecorder()
        hasher = hashlib.sha1()
        try:
            with os.fdopen(fd, "wb") as out:
                for chunk in iter(lambda: src.read(_CHUNK_SIZE), b""):
                    out.write(chunk)
                    hasher.update(chunk)
                    recorder.write(chunk)

            final_path = split_file_path(root, file_uuid)
            os.makedirs(os.path.dirname(final_path), mode=0o770, exist_ok=True)
            os.replace(temp_name, final_path)
        except BaseException:
            if os.path.exists(temp_name):
                os.remove(temp_name)
            raise

        return FileSaveResponse(
            size=recorder.size,
            saved_to=final_path,
            number_of_lines=recorder.lines,
            sha1=hasher.hexdigest(),
        )

    def delete_file(self, doc: EngineFile | TaskFile) -> None:
        """Remove the file's record and then the file itself."""
        if isinstance(doc, EngineFile):
            self._stor.delete_engine_file(doc.file_id)
        elif isinstance(doc, TaskFile):
            self._stor.delete_task_file(doc.file_id)
        else:
            raise TypeError(f"unknown filetype `{doc}`")
        os.remove(doc.saved_at)

    def import_directory(self) -> list[EngineFile]:
        """Import every recognised file from the import directory as a shared engine file.

        Imported files are removed from the import directory. Failures are logged
        and do not stop the import of the remaining files.
        """
        if self._cfg.import_path is None:
            raise CannotImportError()

        imported: list[EngineFile] = []
        for path in list(_walk_files(self._cfg.import_path)):
            extension = os.path.splitext(path)[1]
            file_type = _EXTENSIONS.get(extension)
            if file_type is None:
                log.warning("Skipping import of %s due to invalid file extension", path)
                continue

            log.info("Importing file %s (type %d, extension %s)", path, file_type, extension)
            file_uuid = str(uuid.uuid4())
            try:
                record = self._import_file(path, file_uuid, file_type)
            except Exception:  # storage backends raise their own error types
                log.exception("Failed to import file %s", path)
                continue

            log.info("Imported file %s successfully as %s", path, file_uuid)
            imported.append(record)
        return imported

    def _import_file(self, path: str, file_uuid: str, file_type: EngineFileType) -> EngineFile:
        name = os.path.basename(path)
        src = open(path, "rb")
        try:
            with src:
                saved = self.save_file(src, name, file_uuid, file_type)
                record = EngineFile(
                    file_id=file_uuid,
                    file_name=name,
                    file_size=saved.size,
                    uploaded_by="System",
                    uploaded_by_uuid=SYSTEM_USER_UUID,
                    uploaded_at=datetime.now(timezone.utc),
                    file_type=file_type,
                    number_of_entries=saved.number_of_lines,
                    is_shared=True,
                    sha1_hash=saved.sha1,
                    saved_at=saved.saved_to,
                )
                txn = self._stor.new_engine_file_transaction()
                try:
                    txn.save_engine_file(record)
                    txn.commit()
                except BaseException:
                    txn.rollback()
                    raise
        finally:
            os.remove(path)
        return record