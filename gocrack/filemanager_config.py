"""Settings for the file manager."""

from __future__ import annotations

import os
from dataclasses import dataclass

__all__ = ["ConfigError", "FileManagerConfig", "DEFAULT_MAX_SIZE"]

DEFAULT_MAX_SIZE = 20 * 1024 * 1024

_NOT_VALID_FOLDER = "file_manager.{} has to be a valid, writable folder"


class ConfigError(ValueError):
    """A configuration value is missing or invalid."""


@dataclass
class FileManagerConfig:
    """Where the file manager keeps task files, engine files and temporary data."""

    task_upload_path: str = ""
    engine_file_path: str = ""
    temp_path: str = ""
    task_max_size: int | None = None
    import_path: str | None = None

    def validate(self) -> None:
        """Check that the folders exist and fill in the default upload limit."""
        for key, path in (
            ("task_file_path", self.task_upload_path),
            ("engine_file_path", self.engine_file_path),
            ("temp_path", self.temp_path),
        ):
            if not path or not os.path.exists(path):
                raise ConfigError(_NOT_VALID_FOLDER.format(key))

        if self.import_path is not None and not os.path.exists(self.import_path):
            raise ConfigError(_NOT_VALID_FOLDER.format("import_path"))

        if self.task_max_size is None:
            self.task_max_size = DEFAULT_MAX_SIZE