"""E-mail notifications about cracked passwords and task status changes."""

from __future__ import annotations

import collections
import logging
import smtplib
import ssl
import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from email.message import EmailMessage
from typing import Any, Protocol

import jinja2

from gocrack.filemanager_config import ConfigError
from gocrack.notify_cache import PasswordNotificationCache

__all__ = [
    "EmailServerConfig",
    "NotificationConfig",
    "NotificationEngine",
    "NOTIFICATIONS_SENT",
    "render_cracked_password",
    "render_status_changed",
]

log = logging.getLogger(__name__)

NOTIFICATIONS_SENT: collections.Counter[str] = collections.Counter()
_metrics_lock = threading.Lock()

_IGNORED_STATUSES = frozenset({"Queued", "Dequeued"})

_ENV = jinja2.Environment(autoescape=True, undefined=jinja2.StrictUndefined)

_CRACKED_TEMPLATE = _ENV.from_string(
    """<!DOCTYPE html>
<html>
	<head>
		<meta charset="UTF-8">
	</head>
	<body>
        <p>Your task, {{ task_name }} (Case: {{ case_code }}) has new password(s) that have recently cracked. You may view the results <a href="{{ public_url }}/tasks/details/{{ task_id }}">here</a>.</p>
        <p>Sincerely,<br /> Your friendly neighborhood password cracking server.</p>
	</body>
</html>"""
)

_STATUS_TEMPLATE = _ENV.from_string(
    """<!DOCTYPE html>
<html>
	<head>
		<meta charset="UTF-8">
	</head>
	<body>
		<p>Your task, {{ task_name }} (Case: {{ case_code }}) changed status to {{ new_status }}. You may view your task <a href="{{ public_url }}/tasks/details/{{ task_id }}">here</a>.</p>
		<p>Sincerely,<br /> Your friendly neighborhood password cracking server.</p>
	</body>
</html>"""
)


def render_cracked_password(
    task_id: str, task_name: str, case_code: str | None, public_url: str
) -> str:
    """Render the HTML body of a "new passwords" e-mail."""
    return _CRACKED_TEMPLATE.render(
        task_id=task_id,
        task_name=task_name,
        case_code=case_code or "",
        public_url=public_url,
    )


def render_status_changed(
    task_id: str, task_name: str, new_status: str, case_code: str | None, public_url: str
) -> str:
    """Render the HTML body of a "task status changed" e-mail."""
    return _STATUS_TEMPLATE.render(
        task_id=task_id,
        task_name=task_name,
        new_status=new_status,
        case_code=case_code or "",
        public_url=public_url,
    )


@dataclass
class EmailServerConfig:
    """How to reach the SMTP server."""

    address: str = ""
    port: int = 0
    username: str = ""
    password: str = ""
    skip_invalid_cert: bool = False
    certificate: str | None = None
    server_name: str | None = None


@dataclass
class NotificationConfig:
    """Settings of the e-mail notification engine."""

    email_server: EmailServerConfig = field(default_factory=EmailServerConfig)
    enabled: bool = False
    from_address: str = ""
    public_address: str = ""

    def validate(self) -> None:
        """Check required values when enabled and default the port to 25."""
        if not self.enabled:
            return
        if not self.email_server.address:
            raise ConfigError("notifications.email_server.address must not be empty")
        if not self.from_address:
            raise ConfigError("notifications.from_address must not be empty")
        if not self.public_address:
            raise ConfigError(
                "notifications.public_address must not be empty. "
                "It must point to the URL where the UI is"
            )
        if self.email_server.port == 0:
            self.email_server.port = 25


class NotificationStorage(Protocol):
    def get_task_by_id(self, task_id: str) -> Any: ...

    def get_entitlements_for_task(self, task_id: str) -> Iterable[Any]: ...

    def get_user_by_id(self, user_uuid: str) -> Any: ...


Sender = Callable[[Sequence[EmailMessage]], None]


def _build_tls_context(server: EmailServerConfig) -> tuple[ssl.SSLContext, str]:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    server_name = server.address
    if server.certificate:
        try:
            context.load_verify_locations(cadata=server.certificate)
        except (ssl.SSLError, ValueError) as exc:
            raise ValueError("failed to build cert pool with ca certificate") from exc
        if server.server_name:
            server_name = server.server_name
    else:
        context.load_default_certs()
    if server.skip_invalid_cert:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context, server_name


class _SMTPSender:
    """Delivers messages over one SMTP connection, with TLS."""

    def __init__(self, server: EmailServerConfig, context: ssl.SSLContext, server_name: str):
        self._server = server
        self._context = context
        self._server_name = server_name

    def _connect(self) -> smtplib.SMTP:
        if self._server.port == 465:
            client: smtplib.SMTP = smtplib.SMTP_SSL(context=self._context)
            # the TLS handshake verifies against the name held here
            client._host = self._server_name  # type: ignore[attr-defined]
            client.connect(self._server.address, self._server.port)
            client.ehlo()
            return client
        client = smtplib.SMTP(self._server.address, self._server.port)
        client.ehlo()
        if client.has_extn("starttls"):
            client._host = self._server_name  # type: ignore[attr-defined]
            client.starttls(context=self._context)
            client.ehlo()
        return client

    def __call__(self, messages: Sequence[EmailMessage]) -> None:
        if not messages:
            return
        client = self._connect()
        try:
            if self._server.username:
                client.login(self._server.username, self._server.password)
            for message in messages:
                client.send_message(message)
        finally:
            client.quit()


@dataclass(frozen=True)
class _Recipient:
    user_uuid: str
    email: str


def _count_sent(kind: str) -> None:
    with _metrics_lock:
        NOTIFICATIONS_SENT[kind] += 1


class NotificationEngine:
    """Sends notification e-mails to the users entitled to a task."""

    def __init__(
        self,
        cfg: NotificationConfig,
        stor: NotificationStorage,
        sender: Sender | None = None,
    ) -> None:
        self._cfg = cfg
        self._stor = stor
        context, server_name = _build_tls_context(cfg.email_server)
        self._send: Sender = sender or _SMTPSender(cfg.email_server, context, server_name)
        self._cache = PasswordNotificationCache(timedelta(minutes=10))

    def stop(self) -> None:
        """Stop the engine and its anti-spam cache."""
        self._cache.stop()

    def __enter__(self) -> NotificationEngine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _recipients(self, task_id: str) -> list[_Recipient]:
        recipients = []
        for entitlement in self._stor.get_entitlements_for_task(task_id):
            try:
                user = self._stor.get_user_by_id(entitlement.user_uuid)
            except Exception:  # a missing user is skipped, whatever the backend raises
                continue
            if not user.email_address:
                continue
            recipients.append(_Recipient(entitlement.user_uuid, user.email_address))
        return recipients

    def _message(self, to: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._cfg.from_address
        message["To"] = to
        message["Subject"] = subject
        message.set_content(html, subtype="html")
        return message

    def cracked_password(self, task_id: str) -> None:
        """Tell the task's users about new passwords, at most once per ten minutes."""
        task = self._stor.get_task_by_id(task_id)
        if not self._cache.can_send_email(task_id):
            return

        html = render_cracked_password(
            task_id, task.task_name, task.case_code, self._cfg.public_address
        )
        messages = []
        for index, user in enumerate(self._recipients(task_id)):
            _count_sent("new_passwords")
            messages.append(self._message(user.email, f"New Password(s) for {task_id}", html))
            log.debug("Generated cracked_passwords email %d to %s for %s", index, user.email, task_id)
        self._send(messages)

    def task_status_changed(self, task_id: str, new_status: Any) -> None:
        """Tell the task's users about a status change; queue changes are ignored."""
        status = str(getattr(new_status, "value", new_status))
        if status in _IGNORED_STATUSES:
            return

        task = self._stor.get_task_by_id(task_id)
        html = render_status_changed(
            task_id, task.task_name, status, task.case_code, self._cfg.public_address
        )
        messages = []
        for index, user in enumerate(self._recipients(task_id)):
            _count_sent("task_status_changed")
            messages.append(
                self._message(user.email, f"Task Status change for {task_id}", html)
            )
            log.debug("Generated task_status_changed email %d to %s for %s", index, user.email, task_id)
        self._send(messages)