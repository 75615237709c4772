import logging

from storage_wipe.config import DEFAULT_LOG_FILE, load_settings
from storage_wipe.logsink import echo, setup_logging


def test_defaults(monkeypatch):
    for name in ("STORAGE_WIPE_LOG_FILE", "STORAGE_WIPE_LSBLK_JSON", "STORAGE_WIPE_TOPOLOGY_JSON",
                 "STORAGE_WIPE_SECURITY_PASSWORD", "STORAGE_WIPE_COMMAND_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()
    assert settings.log_file == DEFAULT_LOG_FILE
    assert settings.lsblk_json is None
    assert settings.topology_json is None
    assert settings.command_timeout is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("STORAGE_WIPE_LOG_FILE", "/var/log/wipe.log")
    monkeypatch.setenv("STORAGE_WIPE_LSBLK_JSON", "  ")
    monkeypatch.setenv("STORAGE_WIPE_SECURITY_PASSWORD", "pw")
    monkeypatch.setenv("STORAGE_WIPE_COMMAND_TIMEOUT", "3600")

    settings = load_settings()
    assert settings.log_file == "/var/log/wipe.log"
    assert settings.lsblk_json is None
    assert settings.security_password == "pw"
    assert settings.command_timeout == 3600


def test_log_file_is_appended(tmp_path, capsys):
    log_file = tmp_path / "wipe.log"
    log_file.write_text("earlier run\n")

    logger = setup_logging(str(log_file))
    echo("progress line")
    logger.warning("Warning: something")

    content = log_file.read_text()
    assert content.startswith("earlier run\n")
    assert "INFO - progress line" in content
    assert "WARNING - Warning: something" in content
    captured = capsys.readouterr()
    assert captured.out == "progress line\n"
    assert "Warning: something" in captured.err


def test_unopenable_log_file_degrades_to_stderr(tmp_path, capsys):
    logger = setup_logging(str(tmp_path / "missing" / "wipe.log"))
    logger.error("Error: still reported")

    err = capsys.readouterr().err
    assert "cannot open log file" in err
    assert "Error: still reported" in err
    assert logging.getLogger("storage_wipe").handlers
