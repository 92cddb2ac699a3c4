"""Messages exchanged between workers and the server over RPC."""

from __future__ import annotations

import base64
import enum
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from gocrack.filemanager_config import ConfigError

__all__ = [
    "ListenerConfig",
    "RPCConfig",
    "NoCheckpointError",
    "BeaconPayloadType",
    "FileType",
    "NewTask",
    "ChangeTaskStatus",
    "PayloadItem",
    "BeaconResponse",
    "ChangeTaskStatusRequest",
    "RequestTaskPayload",
    "NewTaskPayloadResponse",
    "TaskFileGetRequest",
    "CrackedPasswordRequest",
    "TaskStatusUpdate",
    "TaskCheckpointSaveRequest",
    "DEFAULT_RPC_ADDRESS",
    "get_devices_in_use",
    "encode",
]

DEFAULT_RPC_ADDRESS = ":4014"


def _json(name: str, **kwargs: Any) -> Any:
    return field(metadata={"json": name}, **kwargs)


@dataclass
class ListenerConfig:
    """Where and how a listener accepts connections."""

    address: str = ""
    use_ssl: bool = False
    certificate: str = ""
    private_key: str = ""
    ca_certificate: str = ""


@dataclass
class RPCConfig:
    """Settings of the RPC listener that workers connect to."""

    listener: ListenerConfig = field(default_factory=ListenerConfig)

    def validate(self) -> None:
        """Fill in the default address and require the TLS certificate and key."""
        if not self.listener.address:
            self.listener.address = DEFAULT_RPC_ADDRESS
        if not self.listener.certificate or not self.listener.private_key:
            raise ConfigError(
                "rpc_server.listener.ssl_certificate and "
                "rpc_server.listener.ssl_private_key must not be empty"
            )


class NoCheckpointError(Exception):
    """The task has no checkpoint file."""

    def __init__(self) -> None:
        super().__init__("rpc: no checkpoint file for task")


class BeaconPayloadType(enum.IntEnum):
    """How the data of a beacon payload item is to be read."""

    NEW_TASK = 1 << 0
    CHANGE_TASK_STATUS = 1 << 1


class FileType(enum.IntEnum):
    """Which kind of file a worker asks for."""

    TASK = 1 << 0
    ENGINE = 1 << 1


@dataclass
class NewTask:
    """A task the worker should start."""

    id: str = _json("ID")
    engine: int = _json("Engine", default=0)
    priority: int = _json("Priority", default=0)
    devices: list[int] | None = _json("Devices", default=None)


@dataclass
class ChangeTaskStatus:
    """A status change the worker should apply to a task."""

    task_id: str = _json("TaskID")
    new_status: str = _json("NewStatus")


@dataclass
class PayloadItem:
    """One action in a beacon response; ``data`` is the decoded JSON value."""

    type: BeaconPayloadType | int = _json("Type")
    data: Any = _json("Data", default=None)


@dataclass
class BeaconResponse:
    """What the server answers to a worker's beacon."""

    payloads: list[PayloadItem] = _json("Payloads", default_factory=list)
    server_time: datetime = _json(
        "ServerTime", default_factory=lambda: datetime.now(timezone.utc)
    )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BeaconResponse:
        """Build a response from its decoded JSON form."""
        payloads = [
            PayloadItem(type=_payload_type(item["Type"]), data=item.get("Data"))
            for item in data.get("Payloads") or []
        ]
        return cls(payloads=payloads, server_time=_parse_time(data["ServerTime"]))


@dataclass
class ChangeTaskStatusRequest:
    """Asks the server to change a task's status."""

    task_id: str = _json("TaskID")
    new_status: str = _json("NewStatus")
    error: str | None = _json("Error", default=None)


@dataclass
class RequestTaskPayload:
    """Asks the server for the details of a task."""

    task_id: str = _json("TaskID")


@dataclass
class NewTaskPayloadResponse:
    """The details of a task to run."""

    task_id: str = _json("TaskID")
    file_id: str = _json("FileID", default="")
    engine: int = _json("Engine", default=0)
    priority: int = _json("Priority", default=0)
    engine_payload: Any = _json("EnginePayload", default=None)
    task_duration: int = _json("TaskDuration", default=0)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NewTaskPayloadResponse:
        """Build a response from its decoded JSON form."""
        return cls(
            task_id=data.get("TaskID", ""),
            file_id=data.get("FileID", ""),
            engine=data.get("Engine", 0),
            priority=data.get("Priority", 0),
            engine_payload=data.get("EnginePayload"),
            task_duration=data.get("TaskDuration", 0),
        )


@dataclass
class TaskFileGetRequest:
    """Asks the server for a task or engine file."""

    file_id: str = _json("FileID")
    type: FileType = _json("Type", default=FileType.TASK)


@dataclass
class CrackedPasswordRequest:
    """Reports a newly cracked password."""

    task_id: str = _json("TaskID")
    hash: str = _json("Hash")
    value: str = _json("Value")
    cracked_at: datetime = _json(
        "CrackedAt", default_factory=lambda: datetime.now(timezone.utc)
    )


@dataclass
class TaskStatusUpdate:
    """A live status report from a cracking engine."""

    engine: int = _json("Engine")
    task_id: str = _json("TaskID")
    final: bool = _json("Final", default=False)
    payload: Any = _json("Payload", default=None)


@dataclass
class TaskCheckpointSaveRequest:
    """Stores a restore point for a task."""

    task_id: str = _json("TaskID")
    data: bytes = _json("Data", default=b"")


def _payload_type(value: int) -> BeaconPayloadType | int:
    try:
        return BeaconPayloadType(value)
    except ValueError:
        return value


def _is_busy(device: Any) -> bool:
    if isinstance(device, Mapping):
        return bool(device.get("IsBusy", device.get("is_busy", False)))
    return bool(getattr(device, "is_busy", False))


def get_devices_in_use(devices: Mapping[int, Any]) -> list[int]:
    """Return the sorted ids of the busy devices in a device map."""
    return sorted(int(device_id) for device_id, dev in devices.items() if _is_busy(dev))


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"
    sign = "+" if offset > timedelta(0) else "-"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


_TIME_RE = re.compile(r"^(.+T\d\d:\d\d:\d\d)(?:\.(\d+))?(Z|[+-]\d\d:\d\d)$")


def _parse_time(text: str) -> datetime:
    match = _TIME_RE.match(text)
    if match is None:
        raise ValueError(f"invalid timestamp {text!r}")
    base, fraction, zone = match.groups()
    if fraction:
        base += "." + fraction[:6].ljust(6, "0")
    base += "+00:00" if zone == "Z" else zone
    return datetime.fromisoformat(base)


def encode(obj: Any) -> Any:
    """Turn a message into a JSON-ready value with the wire field names."""
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.metadata.get("json", f.name): encode(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, enum.Enum):
        return encode(obj.value)
    if isinstance(obj, (bytes, bytearray)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if isinstance(obj, datetime):
        return _format_time(obj)
    if isinstance(obj, Mapping):
        return {str(key): encode(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [encode(item) for item in obj]
    return obj