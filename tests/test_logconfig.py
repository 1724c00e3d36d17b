import json
import logging
import re

import pytest

from collector_agent.logconfig import FileConfig, Level, LoggerConfig, new_logger_config

INFO_YAML = """\
output: file
level: info
file:
  filename: log/collector.log
  maxbackups: 5
  maxsize: 1
  maxage: 7
"""

STDOUT_YAML = """\
output: stdout
level: debug
"""

EXPAND_ENV_YAML = """\
output: file
level: info
file:
  filename: $MYVAR/collector.log
  maxbackups: 5
  maxsize: 1
  maxage: 7
"""


@pytest.fixture
def sample_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("MYVAR", "/some/path")
    (tmp_path / "info.yaml").write_text(INFO_YAML)
    (tmp_path / "stdout.yaml").write_text(STDOUT_YAML)
    (tmp_path / "expand-env.yaml").write_text(EXPAND_ENV_YAML)
    return tmp_path


def _close(handlers):
    for handler in handlers:
        handler.close()


@pytest.mark.parametrize(
    "filename, expected",
    [
        (None, LoggerConfig(output="stdout", level=Level.INFO)),
        (
            "info.yaml",
            LoggerConfig(
                output="file",
                level=Level.INFO,
                file=FileConfig(filename="log/collector.log", max_backups=5, max_size=1, max_age=7),
            ),
        ),
        ("stdout.yaml", LoggerConfig(output="stdout", level=Level.DEBUG)),
        (
            "expand-env.yaml",
            LoggerConfig(
                output="file",
                level=Level.INFO,
                file=FileConfig(
                    filename="/some/path/collector.log", max_backups=5, max_size=1, max_age=7
                ),
            ),
        ),
        ("does-not-exist.yaml", LoggerConfig(output="stdout", level=Level.INFO)),
    ],
)
def test_new_logger_config(sample_dir, filename, expected):
    path = "" if filename is None else str(sample_dir / filename)
    conf = new_logger_config(path)
    assert conf == expected

    handlers = conf.handlers()
    try:
        assert len(handlers) == 1
        assert handlers[0].level == expected.level.logging_level
    finally:
        _close(handlers)


def test_file_handler_size_is_in_megabytes(sample_dir):
    conf = new_logger_config(str(sample_dir / "info.yaml"))
    handlers = conf.handlers()
    try:
        assert handlers[0].maxBytes == 1024 * 1024
    finally:
        _close(handlers)


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert new_logger_config(str(path)) == LoggerConfig()


def test_unset_variable_expands_to_empty(tmp_path, monkeypatch):
    monkeypatch.delenv("COLLECTOR_AGENT_UNSET_VAR", raising=False)
    path = tmp_path / "conf.yaml"
    path.write_text("output: file\nfile:\n  filename: ${COLLECTOR_AGENT_UNSET_VAR}/x.log\n")
    assert new_logger_config(str(path)).file.filename == "/x.log"


def test_unknown_level_raises(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("level: verbose\n")
    with pytest.raises(ValueError, match="unrecognized level"):
        new_logger_config(str(path))


def test_non_mapping_document_raises(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- output\n- file\n")
    with pytest.raises(ValueError):
        new_logger_config(str(path))


@pytest.mark.parametrize(
    "text, expected",
    [("DEBUG", Level.DEBUG), ("warn", Level.WARN), ("", Level.INFO), ("Fatal", Level.FATAL)],
)
def test_level_parsing(text, expected):
    assert Level(text) is expected


def test_level_rejects_unknown_name():
    with pytest.raises(ValueError):
        Level("verbose")


def test_unrecognized_output_raises():
    with pytest.raises(ValueError, match="unrecognized output type: syslog"):
        LoggerConfig(output="syslog").handlers()


def test_stdout_output_writes_json(capsys):
    logger = LoggerConfig(output="stdout", level=Level.INFO).configure(
        logging.getLogger("collector_agent.test.stdout")
    )
    try:
        logger.debug("hidden")
        logger.info("hello %s", "world")
    finally:
        _close(logger.handlers)

    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["level"] == "info"
    assert entry["msg"] == "hello world"
    assert entry["logger"] == "collector_agent.test.stdout"
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}(Z|[+-]\d{4})", entry["ts"])


def test_file_output_writes_json(tmp_path):
    log_path = tmp_path / "logs" / "collector.log"
    conf = LoggerConfig(output="file", level=Level.WARN, file=FileConfig(filename=str(log_path)))
    logger = conf.configure(logging.getLogger("collector_agent.test.file"))
    try:
        logger.info("dropped")
        logger.warning("kept")
    finally:
        _close(logger.handlers)

    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["level"] == "warn"
    assert entry["msg"] == "kept"


def test_configure_replaces_existing_handlers(tmp_path):
    logger = logging.getLogger("collector_agent.test.replace")
    old = logging.NullHandler()
    logger.addHandler(old)
    conf = LoggerConfig(output="file", file=FileConfig(filename=str(tmp_path / "a.log")))
    conf.configure(logger)
    try:
        assert old not in logger.handlers
        assert len(logger.handlers) == 1
        assert logger.propagate is False
    finally:
        _close(logger.handlers)


def test_rotation_keeps_at_most_max_backups(tmp_path):
    conf = LoggerConfig(
        output="file", file=FileConfig(filename=str(tmp_path / "app.log"), max_backups=2)
    )
    logger = conf.configure(logging.getLogger("collector_agent.test.rotate"))
    logger.handlers[0].maxBytes = 50
    try:
        for number in range(6):
            logger.info("message number %d", number)
    finally:
        _close(logger.handlers)

    backups = [p for p in tmp_path.iterdir() if p.name != "app.log"]
    assert 1 <= len(backups) <= 2
    assert all(p.name.startswith("app-") and p.name.endswith(".log") for p in backups)
    assert (tmp_path / "app.log").exists()