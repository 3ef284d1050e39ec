import pytest
from pydantic import ValidationError

from chat_core.config.settings import ChatSettings


def test_yaml_config_is_loaded(tmp_path, monkeypatch):
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        "capability_base_url: https://caps.example.com\n"
        "capability_timeout: 12\n"
        "device_latitude: 42.0\n"
        "device_longitude: -71.0\n"
        "unknown_key: ignored\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("CHAT_CONFIG_FILE", str(cfg))
    s = ChatSettings(_env_file=None)
    assert s.capability_base_url == "https://caps.example.com"
    assert s.capability_timeout == 12.0
    assert (s.device_latitude, s.device_longitude) == (42.0, -71.0)


def test_env_overrides_yaml(tmp_path, monkeypatch):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("owner_id: from-yaml\n", encoding="utf-8")
    monkeypatch.setenv("CHAT_CONFIG_FILE", str(cfg))
    monkeypatch.setenv("OWNER_ID", "from-env")
    assert ChatSettings(_env_file=None).owner_id == "from-env"


def test_validators():
    with pytest.raises(ValidationError):
        ChatSettings(_env_file=None, capability_api_key="short")
    with pytest.raises(ValidationError):
        ChatSettings(_env_file=None, device_latitude=120.0)
    with pytest.raises(ValidationError):
        ChatSettings(_env_file=None, capability_timeout=0.1)
