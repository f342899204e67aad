import logging

import pytest
from pydantic import ValidationError

from bundlepatch.settings import LoggingSettings, LogLevel, Settings, load_settings


def test_defaults_enable_the_four_standard_patches():
    names = [r.name for r in Settings().requests()]
    assert names == ["verbose", "context_low", "esc_interrupt", "statusline_refresh"]


def test_requests_follow_canonical_order_and_options():
    settings = Settings.model_validate(
        {
            "patches": {
                "verbose": {"value": False},
                "context_low": {"enabled": False},
                "statusline_refresh": {"interval_ms": 1000},
                "context_low_message": {"enabled": True, "template": "{percent}% left"},
            }
        }
    )
    reqs = settings.requests()
    assert [r.name for r in reqs] == [
        "verbose",
        "esc_interrupt",
        "statusline_refresh",
        "context_low_message",
    ]
    assert reqs[0].options == {"value": False}
    assert reqs[2].options == {"interval_ms": 1000}
    assert reqs[3].options == {"template": "{percent}% left"}


def test_load_yaml_with_variables(tmp_path, monkeypatch):
    monkeypatch.setenv("BP_INTERVAL", "5000")
    cfg = tmp_path / "bundlepatch.yaml"
    cfg.write_text(
        "\n".join(
            [
                "variables:",
                "  VERBOSE: false",
                "patches:",
                "  verbose:",
                "    value: ${VERBOSE}",
                "  statusline_refresh:",
                "    interval_ms: ${env:BP_INTERVAL}",
                "backup_suffix: .orig",
                "logging:",
                "  default_level: debug",
                "  enabled_loggers:",
                "    bundlepatch.patch: error",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_settings(cfg)
    assert settings.patches.verbose.value is False
    assert settings.patches.statusline_refresh.interval_ms == 5000
    assert settings.backup_suffix == ".orig"
    assert settings.logging is not None
    assert settings.logging.default_level == LogLevel.debug
    assert settings.logging.level() == logging.DEBUG
    assert settings.logging.overrides() == {"bundlepatch.patch": logging.ERROR}


def test_load_json5_with_comments(tmp_path):
    cfg = tmp_path / "bundlepatch.json5"
    cfg.write_text(
        """
        {
          // keep the hint visible
          patches: {esc_interrupt: {enabled: false}},
          backup: false,
        }
        """,
        encoding="utf-8",
    )
    settings = load_settings(cfg)
    assert settings.backup is False
    assert "esc_interrupt" not in [r.name for r in settings.requests()]


def test_empty_yaml_gives_defaults(tmp_path):
    cfg = tmp_path / "empty.yml"
    cfg.write_text("", encoding="utf-8")
    assert load_settings(cfg) == Settings()


def test_escaped_placeholder_is_literal(tmp_path):
    cfg = tmp_path / "c.yaml"
    cfg.write_text(
        "patches:\n  context_low_message:\n    template: 'x $${NOPE} {percent}'\n",
        encoding="utf-8",
    )
    assert load_settings(cfg).patches.context_low_message.template == (
        "x ${NOPE} {percent}"
    )


def test_unsupported_extension(tmp_path):
    cfg = tmp_path / "c.toml"
    cfg.write_text("a = 1", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(cfg)


def test_root_must_be_mapping(tmp_path):
    cfg = tmp_path / "c.yaml"
    cfg.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(cfg)


def test_interval_must_be_positive():
    with pytest.raises(ValidationError):
        Settings.model_validate({"patches": {"statusline_refresh": {"interval_ms": 0}}})


def test_logging_defaults():
    assert LoggingSettings().level() == logging.WARNING
    assert LoggingSettings(default_level=LogLevel.disabled).level() > logging.CRITICAL
