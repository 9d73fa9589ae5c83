from __future__ import annotations

import json

import pytest
from telegram.error import NetworkError
from typer.testing import CliRunner

from skycast import __version__
from skycast.analysis.base import BaseAnalyzer
from skycast.capture.base import BaseCapture
from skycast.cli.commands import app
from skycast.delivery.base import BaseDelivery
from skycast.delivery.telegram import TelegramDelivery
from skycast.logging.error_store import ErrorRecord, ErrorStore
from skycast.models import DeliverableItem
from skycast.pipeline import Pipeline, PipelinePolicies
from skycast.retry import RetryPolicy
from skycast.storage.fallback import FallbackStore

runner = CliRunner()


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in ("SKYCAST_PROVIDER__API_KEY", "SKYCAST_TELEGRAM__TOKEN", "SKYCAST_TELEGRAM__CHAT_ID"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


def _saved_report(home) -> str:
    store = FallbackStore(home / ".skycast" / "failed_reports")
    path = store.save(
        "Rain near the bridge.",
        [DeliverableItem(label="Bridge", payload=b"\xff\xd8\xff" + b"\x00" * 8)],
        RuntimeError("Telegram 403 forbidden"),
    )
    return path.name


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_onboard_writes_config(home) -> None:
    result = runner.invoke(app, ["onboard"])

    assert result.exit_code == 0
    data = json.loads((home / ".skycast" / "config.json").read_text(encoding="utf-8"))
    assert data["telegram"]["batchSize"] == 5
    assert (home / ".skycast" / ".env").exists()


def test_onboard_keeps_existing_config_when_declined(home) -> None:
    config_path = home / ".skycast" / "config.json"
    config_path.parent.mkdir(parents=True)
    config_path.write_text('{"telegram": {"chatId": "-1"}}', encoding="utf-8")

    result = runner.invoke(app, ["onboard"], input="n\n")

    assert result.exit_code == 0
    assert json.loads(config_path.read_text(encoding="utf-8")) == {"telegram": {"chatId": "-1"}}


def test_status(home) -> None:
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert "Cameras: 0" in result.output


def test_run_without_cameras_is_a_config_error(home, monkeypatch) -> None:
    monkeypatch.setattr("skycast.cli.commands._setup_logging", lambda verbose, logs_path: None)
    result = runner.invoke(app, ["run"])
    assert result.exit_code == 2
    assert "Configuration error" in result.output
    assert "capture.cameras" in result.output


def test_run_without_api_key_is_a_config_error(home, monkeypatch) -> None:
    monkeypatch.setattr("skycast.cli.commands._setup_logging", lambda verbose, logs_path: None)
    config_path = home / ".skycast" / "config.json"
    config_path.parent.mkdir(parents=True)
    config_path.write_text(
        json.dumps({
            "capture": {"cameras": [{"label": "North", "url": "http://cams.test/n.jpg"}]},
            "telegram": {"token": "123456:ABC", "chatId": "-100123"},
        }),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 2
    assert "Configuration error" in result.output
    assert "provider.apiKey" in result.output


class _Capture(BaseCapture):
    async def capture(self) -> list[DeliverableItem]:
        return [DeliverableItem(label="Bridge", payload=b"\xff\xd8\xff" + b"\x00" * 8)]


class _Analyzer(BaseAnalyzer):
    async def analyze(self, items, prompt: str) -> str:
        return "Rain near the bridge."


class _UnreachableBot:
    """Bot whose every connection attempt is refused."""

    def __init__(self) -> None:
        self.init_calls = 0

    async def initialize(self) -> None:
        self.init_calls += 1
        raise NetworkError("httpx.ConnectError: [Errno 111] Connection refused")

    async def shutdown(self) -> None:
        raise AssertionError("shutdown without a successful initialize")


async def _no_sleep(delay: float) -> None:
    pass


def test_run_with_unreachable_telegram_saves_report_locally(home, monkeypatch) -> None:
    monkeypatch.setattr("skycast.cli.commands._setup_logging", lambda verbose, logs_path: None)
    bot = _UnreachableBot()
    policy = RetryPolicy(max_retries=1, initial_delay=0)
    pipeline = Pipeline(
        capture=_Capture(),
        analyzer=_Analyzer(),
        delivery=TelegramDelivery(token="", chat_id="-100123", bot=bot),
        store=FallbackStore(home / ".skycast" / "failed_reports"),
        policies=PipelinePolicies(policy, policy, policy, policy),
        sleep=_no_sleep,
    )
    monkeypatch.setattr("skycast.pipeline.factory.build_pipeline", lambda config: pipeline)

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 1
    assert "Report saved locally" in result.output
    assert bot.init_calls > 1
    saved = FallbackStore(home / ".skycast" / "failed_reports").list_reports()
    assert len(saved) == 1


def test_unexpected_run_error_exits_with_failure(home, monkeypatch) -> None:
    monkeypatch.setattr("skycast.cli.commands._setup_logging", lambda verbose, logs_path: None)

    class _Delivery(BaseDelivery):
        async def send_batch(self, items, offset: int = 0) -> None:
            pass

        async def send_text(self, text: str) -> None:
            pass

    class _BrokenPipeline:
        delivery = _Delivery()

        async def run(self):
            raise KeyError("status")

    monkeypatch.setattr("skycast.pipeline.factory.build_pipeline", lambda config: _BrokenPipeline())

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 2
    assert "Run aborted" in result.output


def test_reports_list_empty(home) -> None:
    result = runner.invoke(app, ["reports", "list"])
    assert result.exit_code == 0
    assert "No saved reports." in result.output


def test_reports_list_and_show(home) -> None:
    report_id = _saved_report(home)

    listed = runner.invoke(app, ["reports", "list"])
    assert listed.exit_code == 0
    assert report_id in listed.output

    shown = runner.invoke(app, ["reports", "show", report_id])
    assert shown.exit_code == 0
    assert "Rain near the bridge." in shown.output
    assert "Telegram 403 forbidden" in shown.output


def test_reports_show_unknown_or_invalid(home) -> None:
    assert runner.invoke(app, ["reports", "show", "20990101T000000_000000"]).exit_code == 1
    assert runner.invoke(app, ["reports", "show", "../etc"]).exit_code == 1


def test_reports_delete(home) -> None:
    report_id = _saved_report(home)

    result = runner.invoke(app, ["reports", "delete", report_id, "--yes"])

    assert result.exit_code == 0
    assert not (home / ".skycast" / "failed_reports" / report_id).exists()
    assert runner.invoke(app, ["reports", "delete", report_id, "--yes"]).exit_code == 1


def test_reports_delete_asks_for_confirmation(home) -> None:
    report_id = _saved_report(home)

    result = runner.invoke(app, ["reports", "delete", report_id], input="n\n")

    assert result.exit_code == 0
    assert (home / ".skycast" / "failed_reports" / report_id).exists()


def test_errors_list_and_clear(home) -> None:
    path = home / ".skycast" / "logs" / "errors.jsonl"
    assert "No errors recorded." in runner.invoke(app, ["errors"]).output

    ErrorStore(path).append(ErrorRecord(ts="2026-10-19T07:00:00", level="ERROR", message="camera offline", where="w"))
    listed = runner.invoke(app, ["errors", "--limit", "5"])
    assert listed.exit_code == 0
    assert "camera offline" in listed.output

    cleared = runner.invoke(app, ["errors", "--clear"])
    assert cleared.exit_code == 0
    assert not path.exists()
