from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from mailpulse.config import CONFIG_ENV_VAR, ConfigError, load_config
from mailpulse.watcher import DEFAULT_INFO_DELAY


def _write_config(tmp_path: Path, content: str) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(textwrap.dedent(content), encoding="utf-8")
    return config_path


def test_load_config_success(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        f"""
        root_dir: {tmp_path}/state
        profiles_ini: {tmp_path}/tb/profiles.ini
        roots:
          - {tmp_path}/ImapMail/imap.example.com
          - ~/Mail
        info_delay: 0.5
        logging:
          level: DEBUG
          debug_file: true
        """,
    )

    config = load_config(config_path)

    assert config.root_dir == tmp_path / "state"
    assert config.profiles_ini == tmp_path / "tb" / "profiles.ini"
    assert config.roots == [tmp_path / "ImapMail" / "imap.example.com", Path("~/Mail").expanduser()]
    assert config.info_delay == 0.5
    assert config.logging.level == "debug"
    assert config.logging.debug_file is True


def test_missing_default_config_uses_defaults(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))

    config = load_config()

    assert config.profiles_ini is None
    assert config.roots == []
    assert config.info_delay == DEFAULT_INFO_DELAY
    assert config.logging.level == "info"


def test_load_config_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, "info_delay: 2\n")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_path))

    assert load_config().info_delay == 2.0


def test_explicit_missing_config_is_an_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    with pytest.raises(ConfigError, match="Config file not found"):
        load_config(tmp_path / "absent.yaml")

    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "absent-env.yaml"))
    with pytest.raises(ConfigError, match="Config file not found"):
        load_config()


@pytest.mark.parametrize(
    "bad_content, expected_message",
    [
        ("- just\n- a list\n", "Configuration root must be a mapping"),
        ("roots: /single/path\n", "roots must be a list"),
        ("roots:\n  - 3\n", r"roots\[1\] must be a string path"),
        ("info_delay: soon\n", "info_delay must be a number"),
        ("info_delay: -1\n", "info_delay cannot be negative"),
        ("profiles_ini: ''\n", "profiles_ini must be a non-empty path"),
        ("logging: verbose\n", "logging must be a mapping"),
        ("roots: [unclosed\n", "Invalid YAML"),
    ],
)
def test_invalid_configs(tmp_path: Path, bad_content: str, expected_message: str) -> None:
    config_path = _write_config(tmp_path, bad_content)

    with pytest.raises(ConfigError, match=expected_message):
        load_config(config_path)
