import json
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from waitlist.errors import ConfigurationError, DispatchFailed
from waitlist.mailer import EmailSender
from waitlist.registry import RegistryStore
from waitlist.registry.json_store import JsonRegistryStore
from waitlist.registry.models import Registry, Subscriber
from waitlist.workflows import welcome_dispatch
from waitlist.workflows.welcome_dispatch import DispatchConfig, dispatch
from waitlist.workflows.welcome_message import SUBJECT

ENV = {
    "SMTP_HOST": "smtp.example.com",
    "SMTP_PORT": "587",
    "SMTP_USER": "mailer",
    "SMTP_PASS": "secret",
    "FROM_EMAIL": "hello@wealthwards.com",
}


class RecordingSender(EmailSender):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: List[Dict[str, object]] = []

    def send_email(
        self,
        *,
        sender: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        to: Sequence[str] = (),
        bcc: Sequence[str] = (),
    ) -> str:
        if self.fail:
            raise DispatchFailed()
        self.calls.append(
            {"sender": sender, "subject": subject, "html": html,
             "text": text, "to": list(to), "bcc": list(bcc)}
        )
        return f"<msg-{len(self.calls)}@wealthwards.com>"


class SpyStore(RegistryStore):
    def __init__(self, registry: Optional[Registry] = None) -> None:
        super().__init__()
        self.registry = registry or Registry()
        self.loads = 0

    def load(self) -> Registry:
        self.loads += 1
        return self.registry

    def save(self, registry: Registry) -> None:
        raise AssertionError("dispatch must never write")


def _store(*emails: str) -> SpyStore:
    return SpyStore(Registry([Subscriber(email=e) for e in emails]))


def _config(**overrides: object) -> DispatchConfig:
    values = dict(
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_user="mailer",
        smtp_pass="secret",
        from_address="hello@wealthwards.com",
    )
    values.update(overrides)
    return DispatchConfig(**values)  # type: ignore[arg-type]


def test_sends_once_to_distinct_addresses_as_bcc() -> None:
    sender = RecordingSender()
    report = dispatch(_config(), _store("a@x.com", "A@X.com", "b@y.com"), sender)

    assert len(sender.calls) == 1
    call = sender.calls[0]
    assert call["bcc"] == ["a@x.com", "b@y.com"]
    assert call["to"] == []
    assert call["sender"] == "hello@wealthwards.com"
    assert call["subject"] == SUBJECT
    assert report.sent
    assert report.message_id == "<msg-1@wealthwards.com>"
    assert report.recipients == ["a@x.com", "b@y.com"]
    assert report.delivered_to == ["a@x.com", "b@y.com"]


def test_text_and_html_carry_the_same_content() -> None:
    sender = RecordingSender()
    dispatch(_config(), _store("a@x.com"), sender)
    call = sender.calls[0]
    for phrase in ["early access list", "hearing more from us soon", "The Wealth Wards Team"]:
        assert phrase in str(call["text"])
        assert phrase in str(call["html"])


def test_empty_registry_is_a_successful_no_op() -> None:
    sender = RecordingSender()
    report = dispatch(_config(), _store(), sender)
    assert sender.calls == []
    assert not report.sent
    assert report.delivered_to == []


def test_invalid_records_are_skipped() -> None:
    sender = RecordingSender()
    report = dispatch(_config(), _store("", "broken", "ok@x.com"), sender)
    assert sender.calls[0]["bcc"] == ["ok@x.com"]
    assert report.recipients == ["ok@x.com"]


def test_registry_without_valid_addresses_sends_nothing() -> None:
    sender = RecordingSender()
    report = dispatch(_config(), _store("", "broken"), sender)
    assert sender.calls == []
    assert not report.sent


def test_override_routes_single_message_to_test_address() -> None:
    sender = RecordingSender()
    emails = [f"user{i}@x.com" for i in range(50)]
    report = dispatch(_config(override_address="qa@wealthwards.com"), _store(*emails), sender)

    assert len(sender.calls) == 1
    assert sender.calls[0]["to"] == ["qa@wealthwards.com"]
    assert sender.calls[0]["bcc"] == []
    assert report.delivered_to == ["qa@wealthwards.com"]
    assert len(report.recipients) == 50


def test_missing_config_fails_before_store_access() -> None:
    store = _store("a@x.com")
    sender = RecordingSender()
    with pytest.raises(ConfigurationError) as excinfo:
        dispatch(_config(smtp_pass="", from_address=""), store, sender)
    assert excinfo.value.missing == ["SMTP_PASS", "FROM_EMAIL"]
    assert store.loads == 0
    assert sender.calls == []


def test_transport_failure_propagates() -> None:
    with pytest.raises(DispatchFailed):
        dispatch(_config(), _store("a@x.com"), RecordingSender(fail=True))


def test_dry_run_does_not_send() -> None:
    sender = RecordingSender()
    report = dispatch(_config(), _store("a@x.com"), sender, dry_run=True)
    assert sender.calls == []
    assert report.recipients == ["a@x.com"]
    assert not report.sent


def test_config_from_env_lists_every_missing_name() -> None:
    env = dict(ENV, SMTP_HOST="", SMTP_USER="  ")
    del env["SMTP_PORT"]
    with pytest.raises(ConfigurationError) as excinfo:
        DispatchConfig.from_env(env)
    assert excinfo.value.missing == ["SMTP_HOST", "SMTP_PORT", "SMTP_USER"]
    assert "SMTP_HOST, SMTP_PORT, SMTP_USER" in excinfo.value.message


def test_config_from_env_reads_optional_values() -> None:
    config = DispatchConfig.from_env(
        dict(ENV, TO_OVERRIDE=" qa@x.com ", SMTP_USE_SSL="true", SMTP_DEBUG="0")
    )
    assert config.smtp_port == 587
    assert config.override_address == "qa@x.com"
    assert config.use_ssl is True
    assert config.debug is False
    assert DispatchConfig.from_env(ENV).use_ssl is None


def test_config_rejects_non_numeric_port() -> None:
    with pytest.raises(ConfigurationError):
        DispatchConfig.from_env(dict(ENV, SMTP_PORT="smtp"))


@pytest.fixture
def job_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr(welcome_dispatch, "load_dotenv", lambda **kwargs: False)
    for name in list(ENV) + ["TO_OVERRIDE", "REGISTRY_BACKEND", "SMTP_USE_SSL"]:
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "subscribers.json"
    monkeypatch.setenv("SUBSCRIBERS_FILE", str(path))
    return path


def test_main_exits_non_zero_without_config(job_env: Path) -> None:
    assert welcome_dispatch.main([]) == 1
    assert not job_env.exists()


def test_main_sends_and_exits_zero(
    job_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    for name, value in ENV.items():
        monkeypatch.setenv(name, value)
    JsonRegistryStore(job_env).save(
        Registry([Subscriber(email="a@x.com"), Subscriber(email="b@y.com")])
    )
    sender = RecordingSender()
    monkeypatch.setattr(DispatchConfig, "build_sender", lambda self: sender)

    assert welcome_dispatch.main([]) == 0
    assert sender.calls[0]["bcc"] == ["a@x.com", "b@y.com"]


def test_main_reports_transport_failure(
    job_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    for name, value in ENV.items():
        monkeypatch.setenv(name, value)
    job_env.write_text(
        json.dumps({"subscribers": [{"email": "a@x.com"}]}), encoding="utf-8"
    )
    monkeypatch.setattr(
        DispatchConfig, "build_sender", lambda self: RecordingSender(fail=True)
    )
    assert welcome_dispatch.main([]) == 1


def test_main_with_empty_registry_exits_zero(
    job_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    for name, value in ENV.items():
        monkeypatch.setenv(name, value)
    assert welcome_dispatch.main(["--dry-run"]) == 0
    assert json.loads(job_env.read_text(encoding="utf-8")) == {"subscribers": []}
