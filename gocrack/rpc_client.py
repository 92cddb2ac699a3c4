"""Client a worker uses to talk to the server's RPC listener."""

from __future__ import annotations

import json
import os
import ssl
import tempfile
from dataclasses import dataclass
from typing import Any, BinaryIO

import requests
from requests.adapters import HTTPAdapter

from gocrack.rpc_types import (
    BeaconResponse,
    ChangeTaskStatusRequest,
    CrackedPasswordRequest,
    NewTaskPayloadResponse,
    NoCheckpointError,
    RequestTaskPayload,
    TaskCheckpointSaveRequest,
    TaskFileGetRequest,
    TaskStatusUpdate,
    encode,
)

__all__ = ["FileResponse", "RPCClient"]


@dataclass
class FileResponse:
    """A downloaded file stream and the SHA1 the server reported for it."""

    file: BinaryIO
    hash: str

    def __enter__(self) -> FileResponse:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.file.close()


class _TLSAdapter(HTTPAdapter):
    def __init__(self, context: ssl.SSLContext, server_name: str | None) -> None:
        self._context = context
        self._server_name = server_name
        super().__init__()

    def init_poolmanager(self, *args: Any, **kwargs: Any) -> None:
        kwargs["ssl_context"] = self._context
        if self._server_name:
            kwargs["server_hostname"] = self._server_name
            kwargs["assert_hostname"] = self._server_name
        super().init_poolmanager(*args, **kwargs)


def _as_bytes(value: bytes | str) -> bytes:
    return value.encode("ascii") if isinstance(value, str) else bytes(value)


class RPCClient:
    """Sends beacons, status updates and file requests to the server."""

    def __init__(self, server_address: str) -> None:
        self._base_url = f"https://{server_address}"
        self._session = requests.Session()
        self._tls: ssl.SSLContext | None = None
        self._server_name: str | None = None

    def override_server_name(self, server_name: str) -> None:
        """Verify the server certificate against this name instead of the address."""
        if self._tls is None:
            raise RuntimeError(
                "cannot override server name when credentials have not been added to the client"
            )
        self._server_name = server_name
        self._mount()

    def add_credentials(
        self,
        certificate: bytes | str,
        private_key: bytes | str,
        ca_certificate: bytes | str | None = None,
    ) -> None:
        """Use a client certificate and, if given, a private CA for the TLS connection."""
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        with tempfile.TemporaryDirectory() as folder:
            cert_path = os.path.join(folder, "cert.pem")
            key_path = os.path.join(folder, "key.pem")
            with open(cert_path, "wb") as out:
                out.write(_as_bytes(certificate))
            with open(key_path, "wb") as out:
                out.write(_as_bytes(private_key))
            context.load_cert_chain(cert_path, key_path)

        if ca_certificate is not None:
            try:
                context.load_verify_locations(cadata=_as_bytes(ca_certificate).decode("ascii"))
            except (ssl.SSLError, ValueError) as exc:
                raise ValueError("failed to build cert pool with ca certificate") from exc
        else:
            context.load_default_certs()

        self._tls = context
        self._mount()

    def _mount(self) -> None:
        assert self._tls is not None
        self._session.mount("https://", _TLSAdapter(self._tls, self._server_name))

    def _call(self, method: str, path: str, payload: Any = None) -> Any:
        body = None if payload is None else json.dumps(encode(payload)) + "\n"
        response = self._session.request(
            method, self._base_url + path, data=body, headers={"Accept-Encoding": "gzip"}
        )
        with response:
            response.raise_for_status()
            if response.status_code == requests.codes.no_content:
                return None
            if "application/json" in response.headers.get("Content-Type", "").lower():
                return response.json()
            return response.content

    def _call_json(self, method: str, path: str, payload: Any) -> Any:
        result = self._call(method, path, payload)
        if not isinstance(result, dict):
            raise ValueError(f"expected a JSON object from {path}")
        return result

    def beacon(self, request: Any) -> BeaconResponse:
        """Send the worker's current state and receive pending actions."""
        return BeaconResponse.from_dict(self._call_json("POST", "/rpc/v1/beacon", request))

    def change_task_status(self, request: ChangeTaskStatusRequest) -> None:
        """Ask the server to change the status of a task."""
        self._call("POST", "/rpc/v1/task/status_change", request)

    def get_task(self, request: RequestTaskPayload) -> NewTaskPayloadResponse:
        """Fetch the details of a task."""
        return NewTaskPayloadResponse.from_dict(
            self._call_json("POST", "/rpc/v1/task/payload", request)
        )

    def get_file(self, request: TaskFileGetRequest) -> FileResponse:
        """Open a task or engine file as a stream; close it when done."""
        response = self._session.post(
            self._base_url + "/rpc/v1/file",
            data=json.dumps(encode(request)) + "\n",
            headers={"Accept-Encoding": "gzip"},
            stream=True,
        )
        response.raw.decode_content = True
        return FileResponse(file=response.raw, hash=response.headers.get("X-FileHash-SHA1", ""))

    def saved_cracked_password(self, request: CrackedPasswordRequest) -> None:
        """Report a newly cracked password."""
        self._call("POST", "/rpc/v1/task/cracked", request)

    def send_task_status(self, request: TaskStatusUpdate) -> None:
        """Send a live engine status update."""
        self._call("POST", "/rpc/v1/task/status", request)

    def send_checkpoint_file(self, request: TaskCheckpointSaveRequest) -> None:
        """Store a task's restore point on the server."""
        self._call("POST", "/rpc/v1/task/checkpoint", request)

    def get_checkpoint_file(self, task_id: str) -> bytes:
        """Fetch a task's restore point; raise NoCheckpointError if there is none."""
        result = self._call("GET", f"/rpc/v1/task/checkpoint/{task_id}")
        if isinstance(result, dict):
            result = json.dumps(result).encode("utf-8")
        if not result:
            raise NoCheckpointError()
        return result