from __future__ import annotations

import json
import stat

import pytest
from dotenv import dotenv_values
from pydantic import ValidationError

from skycast.config.loader import config_has_secrets, load_config, save_config
from skycast.config.schema import Config, ReportConfig
from skycast.models import DeliverableItem
from skycast.pipeline.factory import build_pipeline, policies_from_config
from skycast.retry import classify_error, classify_typed_error


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("SKYCAST_PROVIDER__API_KEY", "SKYCAST_TELEGRAM__TOKEN", "SKYCAST_TELEGRAM__CHAT_ID"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_follow_retry_schedules() -> None:
    config = Config()
    assert config.retry.analysis.max_retries == 3
    assert config.retry.analysis.initial_delay == 120.0
    assert config.retry.delivery.initial_delay == 2.0
    assert config.retry.notify.max_retries == 2
    assert config.telegram.batch_size == 5


def test_load_camel_case_config(tmp_path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "capture": {
                    "cameras": [{"label": "North", "url": "http://cams.test/n.jpg"}],
                    "targetCount": 1,
                },
                "telegram": {"chatId": "-100123", "batchSize": 3},
                "retry": {"analysis": {"maxRetries": 1, "initialDelay": 5}, "typedErrors": True},
            }
        ),
        encoding="utf-8",
    )

    config = load_config(config_path, tmp_path / ".env")

    assert config.capture.cameras[0].label == "North"
    assert config.capture.target_count == 1
    assert config.telegram.chat_id == "-100123"
    assert config.telegram.batch_size == 3
    assert config.retry.analysis.max_retries == 1
    assert config.retry.typed_errors is True


def test_invalid_config_falls_back_to_defaults(tmp_path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text('{"telegram": {"batchSize": 50}}', encoding="utf-8")

    config = load_config(config_path, tmp_path / ".env")

    assert config.telegram.batch_size == 5


def test_save_moves_secrets_to_env_file(tmp_path) -> None:
    config_path = tmp_path / "config.json"
    env_path = tmp_path / ".env"
    config = Config()
    config.provider.api_key = "sk-or-secret"
    config.telegram.token = "123456:ABC"

    save_config(config, config_path, env_path)

    data = json.loads(config_path.read_text(encoding="utf-8"))
    assert data["provider"]["apiKey"] == ""
    assert data["telegram"]["token"] == ""
    assert not config_has_secrets(config_path)

    env = dotenv_values(env_path)
    assert env["SKYCAST_PROVIDER__API_KEY"] == "sk-or-secret"
    assert env["SKYCAST_TELEGRAM__TOKEN"] == "123456:ABC"
    assert stat.S_IMODE(env_path.stat().st_mode) == 0o600


def test_env_file_supplies_secrets(tmp_path) -> None:
    config_path = tmp_path / "config.json"
    env_path = tmp_path / ".env"
    config_path.write_text('{"telegram": {"token": "", "chatId": "-100123"}}', encoding="utf-8")
    env_path.write_text("SKYCAST_TELEGRAM__TOKEN='123456:ABC'\n", encoding="utf-8")

    config = load_config(config_path, env_path)

    assert config.telegram.token == "123456:ABC"
    assert config.telegram.chat_id == "-100123"


def test_real_env_beats_env_file_and_json(tmp_path, monkeypatch) -> None:
    config_path = tmp_path / "config.json"
    env_path = tmp_path / ".env"
    config_path.write_text('{"telegram": {"chatId": "-100123"}}', encoding="utf-8")
    env_path.write_text("SKYCAST_TELEGRAM__TOKEN=from-file\n", encoding="utf-8")
    monkeypatch.setenv("SKYCAST_TELEGRAM__TOKEN", "from-env")
    monkeypatch.setenv("SKYCAST_TELEGRAM__CHAT_ID", "-100777")

    config = load_config(config_path, env_path)

    assert config.telegram.token == "from-env"
    assert config.telegram.chat_id == "-100777"


def test_saved_config_loads_back(tmp_path) -> None:
    config_path = tmp_path / "config.json"
    env_path = tmp_path / ".env"
    config = Config()
    config.provider.api_key = "sk-or-secret"
    config.retry.typed_errors = True

    save_config(config, config_path, env_path)
    loaded = load_config(config_path, env_path)

    assert loaded.provider.api_key == "sk-or-secret"
    assert loaded.retry.typed_errors is True


def test_unknown_timezone_is_rejected() -> None:
    with pytest.raises(ValidationError):
        ReportConfig(timezone="Mars/Olympus")


def test_typed_errors_switches_classifier() -> None:
    config = Config()
    assert policies_from_config(config).delivery.classify is classify_error

    config.retry.typed_errors = True
    policies = policies_from_config(config)
    assert policies.delivery.classify is classify_typed_error
    assert policies.transformation.initial_delay == 120.0


def test_build_pipeline_requires_cameras(tmp_path) -> None:
    config = Config()
    config.storage.data_dir = str(tmp_path)
    with pytest.raises(ValueError):
        build_pipeline(config)


def test_build_pipeline_wires_config(tmp_path) -> None:
    config = Config.model_validate(
        {
            "capture": {"cameras": [{"label": "North", "url": "http://cams.test/n.jpg"}]},
            "provider": {"api_key": "sk-test"},
            "telegram": {"token": "123456:ABC", "chat_id": "-100123", "batch_size": 4},
            "storage": {"data_dir": str(tmp_path)},
        }
    )

    pipeline = build_pipeline(config)

    assert pipeline.batch_size == 4
    assert pipeline.store.root == tmp_path / "failed_reports"
    assert pipeline.audit.path == tmp_path / "logs" / "retry.jsonl"
    assert "1. North" in pipeline.prompt_builder([DeliverableItem("North", b"")])


@pytest.mark.parametrize(
    ("section", "key", "setting"),
    [
        ("provider", "api_key", "provider.apiKey"),
        ("telegram", "token", "telegram.token"),
        ("telegram", "chat_id", "telegram.chatId"),
    ],
)
def test_build_pipeline_requires_credentials(tmp_path, section: str, key: str, setting: str) -> None:
    data = {
        "capture": {"cameras": [{"label": "North", "url": "http://cams.test/n.jpg"}]},
        "provider": {"api_key": "sk-test"},
        "telegram": {"token": "123456:ABC", "chat_id": "-100123"},
        "storage": {"data_dir": str(tmp_path)},
    }
    data[section][key] = ""

    with pytest.raises(ValueError) as info:
        build_pipeline(Config.model_validate(data))
    assert setting in str(info.value)
    assert "capture.cameras" not in str(info.value)
