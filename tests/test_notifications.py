from dataclasses import dataclass
from types import SimpleNamespace

import pytest

from gocrack.filemanager_config import ConfigError
from gocrack.notifications import (
    NOTIFICATIONS_SENT,
    EmailServerConfig,
    NotificationConfig,
    NotificationEngine,
    render_cracked_password,
    render_status_changed,
)

PUBLIC_URL = "https://crack.example.com"


@dataclass
class FakeTask:
    task_name: str
    case_code: str | None


class FakeStore:
    def __init__(self):
        self.tasks = {"t1": FakeTask("Quarterly audit", "CASE-1")}
        self.entitlements = {"t1": ["u1", "u2", "u3", "u4"]}
        self.users = {
            "u1": "alice@example.com",
            "u2": "",
            "u3": "bob@example.com",
        }

    def get_task_by_id(self, task_id):
        return self.tasks[task_id]

    def get_entitlements_for_task(self, task_id):
        return [SimpleNamespace(user_uuid=u) for u in self.entitlements.get(task_id, [])]

    def get_user_by_id(self, user_uuid):
        return SimpleNamespace(email_address=self.users[user_uuid])


def make_config(**overrides):
    cfg = NotificationConfig(
        email_server=EmailServerConfig(address="smtp.example.com"),
        enabled=True,
        from_address="gocrack@example.com",
        public_address=PUBLIC_URL,
    )
    for key, value in overrides.items():
        setattr(cfg, key, value)
    return cfg


@pytest.fixture
def sent():
    return []


@pytest.fixture
def engine(sent):
    eng = NotificationEngine(make_config(), FakeStore(), sent.append)
    yield eng
    eng.stop()


def body(message):
    return message.get_content()


def test_validate_disabled_skips_checks():
    cfg = NotificationConfig()
    cfg.validate()
    assert cfg.email_server.port == 0


def test_validate_defaults_port():
    cfg = make_config()
    cfg.validate()
    assert cfg.email_server.port == 25


def test_validate_keeps_explicit_port():
    cfg = make_config()
    cfg.email_server.port = 587
    cfg.validate()
    assert cfg.email_server.port == 587


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"email_server": EmailServerConfig()}, "notifications.email_server.address must not be empty"),
        ({"from_address": ""}, "notifications.from_address must not be empty"),
        ({"public_address": ""}, "notifications.public_address must not be empty"),
    ],
)
def test_validate_errors(overrides, message):
    cfg = make_config(**overrides)
    with pytest.raises(ConfigError) as excinfo:
        cfg.validate()
    assert str(excinfo.value).startswith(message)


def test_render_cracked_password_contents():
    html = render_cracked_password("t9", "Audit", "CASE-9", PUBLIC_URL)
    assert "Your task, Audit (Case: CASE-9)" in html
    assert f'href="{PUBLIC_URL}/tasks/details/t9"' in html
    assert html.startswith("<!DOCTYPE html>")


def test_render_escapes_html():
    html = render_status_changed("t9", "<b>x</b>", "Done", None, PUBLIC_URL)
    assert "&lt;b&gt;x&lt;/b&gt;" in html
    assert "<b>x</b>" not in html
    assert "(Case: )" in html
    assert "changed status to Done" in html


def test_invalid_certificate_rejected(sent):
    cfg = make_config()
    cfg.email_server.certificate = "not a certificate"
    with pytest.raises(ValueError, match="failed to build cert pool"):
        NotificationEngine(cfg, FakeStore(), sent.append)


def test_cracked_password_sends_to_users_with_email(sent):
    before = NOTIFICATIONS_SENT["new_passwords"]
    with NotificationEngine(make_config(), FakeStore(), sent.append) as eng:
        eng.cracked_password("t1")

    assert len(sent) == 1
    messages = sent[0]
    assert [m["To"] for m in messages] == ["alice@example.com", "bob@example.com"]
    assert all(m["Subject"] == "New Password(s) for t1" for m in messages)
    assert all(m["From"] == "gocrack@example.com" for m in messages)
    assert "Quarterly audit (Case: CASE-1)" in body(messages[0])
    assert f"{PUBLIC_URL}/tasks/details/t1" in body(messages[0])
    assert NOTIFICATIONS_SENT["new_passwords"] - before == len(messages)


def test_cracked_password_is_rate_limited(sent):
    with NotificationEngine(make_config(), FakeStore(), sent.append) as eng:
        eng.cracked_password("t1")
        eng.cracked_password("t1")
    assert len(sent) == 1


def test_cracked_password_unknown_task(engine, sent):
    with pytest.raises(KeyError):
        engine.cracked_password("missing")
    assert sent == []


@pytest.mark.parametrize("status", ["Queued", "Dequeued"])
def test_queue_status_changes_are_ignored(sent, status):
    with NotificationEngine(make_config(), FakeStore(), sent.append) as eng:
        eng.task_status_changed("missing", status)
    assert sent == []


def test_task_status_changed_sends(sent):
    before = NOTIFICATIONS_SENT["task_status_changed"]
    with NotificationEngine(make_config(), FakeStore(), sent.append) as eng:
        eng.task_status_changed("t1", "Done")

    assert len(sent) == 1
    messages = sent[0]
    assert [m["To"] for m in messages] == ["alice@example.com", "bob@example.com"]
    assert messages[0]["Subject"] == "Task Status change for t1"
    assert "changed status to Done" in body(messages[0])
    assert NOTIFICATIONS_SENT["task_status_changed"] - before == 2


def test_task_status_changed_is_not_rate_limited(sent):
    with NotificationEngine(make_config(), FakeStore(), sent.append) as eng:
        eng.task_status_changed("t1", "Running")
        eng.task_status_changed("t1", "Done")
    assert len(sent) == 2


def test_task_without_entitled_users_sends_empty_batch(sent):
    store = FakeStore()
    store.entitlements["t1"] = []
    with NotificationEngine(make_config(), store, sent.append) as eng:
        eng.task_status_changed("t1", "Done")
    assert sent == [[]]