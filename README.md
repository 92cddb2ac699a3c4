# gocrack

Building blocks for a distributed password cracking service: a file manager
that stores uploads in a sharded directory tree, e-mail notifications for
task events, the message types exchanged between the server and its workers,
and the HTTP client a worker uses to reach the server.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `gocrack.opencl_types`: `DeviceType` bit flags with readable names
  (`str(DeviceType.CPU | DeviceType.ACCELERATOR)` is `"CPU|Accelerator"`,
  `str(DeviceType.ALL)` is `"CPU|GPU|Accelerator|Default"`). `to_error(code)`
  maps an OpenCL status code to a `CLError` (or `None` for success, and an
  `UnknownCLError` for codes it does not know); `check(code)` raises it.
- `gocrack.password_check`: `check_password_requirement(password)` is true
  when the password is at least eight bytes long in UTF-8 and contains a
  letter, a number and a punctuation character.
- `gocrack.size_recorder`: `WriteSizeRecorder` and `WriteSizeLineRecorder`
  are sinks with a `write(data)` method that count bytes (`size`) and, for
  the latter, lines (`lines`, the number of newlines plus one).
- `gocrack.notify_cache`: `PasswordNotificationCache(expire_after, ...)`
  answers `can_send_email(task_id)` with true at most once per expiry period
  per task. A background thread drops entries older than `clear_after`;
  `stop()` (or leaving a `with` block) ends it and clears the cache.
- `gocrack.filemanager_config`: `FileManagerConfig` holds the task, engine,
  temporary and optional import directories. `validate()` raises
  `ConfigError` when one is missing and sets `task_max_size` to 20 MiB
  when unset.
- `gocrack.filemanager`: `FileManager` saves a stream with `save_file`,
  returning a `FileSaveResponse` with its SHA-1, size, line count and final
  path (`split_file_path` nests it under seven two-character directories
  taken from its UUID). `delete_file` removes an `EngineFile` or `TaskFile`
  record and its file. `import_directory()` (also `refresh()`) imports every
  `.dict`, `.dictionary`, `.rule`, `.rules`, `.hcmask` and `.masks` file from
  the import directory as a shared engine file, removes it from the import
  directory and returns the new records; it raises `CannotImportError` when
  no import directory is configured.
- `gocrack.notifications`: `NotificationConfig` (with `EmailServerConfig`)
  and `NotificationEngine`, which sends HTML e-mails to the users entitled
  to a task through `cracked_password(task_id)` (at most once per ten
  minutes per task) and `task_status_changed(task_id, new_status)` (ignoring
  `Queued` and `Dequeued`). `render_cracked_password` and
  `render_status_changed` produce the message bodies, and
  `NOTIFICATIONS_SENT` counts messages by kind. By default mail goes over
  SMTP with TLS; any callable taking a list of `EmailMessage` can be passed
  as `sender` instead.
- `gocrack.rpc_types`: the request and response dataclasses exchanged
  between server and workers, `RPCConfig`/`ListenerConfig`,
  `get_devices_in_use`, and `encode`, which turns a message into JSON-ready
  data using the wire field names.
- `gocrack.rpc_client`: `RPCClient` calls the server's `/rpc/v1` endpoints
  over HTTPS with a client certificate: `beacon`, `change_task_status`,
  `get_task`, `get_file` (a `FileResponse` stream plus the reported SHA-1),
  `saved_cracked_password`, `send_task_status`, `send_checkpoint_file` and
  `get_checkpoint_file` (raises `NoCheckpointError` when there is none).

## Storage

The file manager and the notification engine take a storage object supplied
by the caller:

- for `FileManager`: `new_engine_file_transaction()` returning an object with
  `save_engine_file(record)`, `commit()` and `rollback()`, plus
  `delete_engine_file(file_id)` and `delete_task_file(file_id)`;
- for `NotificationEngine`: `get_task_by_id(task_id)` (with `task_name` and
  `case_code`), `get_entitlements_for_task(task_id)` (items with
  `user_uuid`) and `get_user_by_id(user_uuid)` (with `email_address`).

## Example

```python
from gocrack.filemanager import FileManager, EngineFileType
from gocrack.filemanager_config import FileManagerConfig

cfg = FileManagerConfig(
    task_upload_path="/srv/tasks",
    engine_file_path="/srv/engine",
    temp_path="/srv/tmp",
)
cfg.validate()

manager = FileManager(storage_backend, cfg)
with open("words.dict", "rb") as src:
    saved = manager.save_file(src, "words.dict", file_uuid, EngineFileType.DICTIONARY)
print(saved.sha1, saved.number_of_lines, saved.saved_to)
```

A worker talking to the server:

```python
from gocrack.rpc_client import RPCClient
from gocrack.rpc_types import RequestTaskPayload

client = RPCClient("cracker.example.com:4014")
client.add_credentials(cert_pem, key_pem, ca_pem)
task = client.get_task(RequestTaskPayload(task_id="some-task-id"))
```

## What this package does not do

It has no command to run, no RPC or web server that answers the client's
requests, no storage backend or database, no authentication backends and no
cracking engine or OpenCL device access. Those must be provided by the
application that uses these pieces.