import json
import logging

import pytest

from read_later import cli, library
from read_later.config import AppConfig, DatabaseConfig, LoggingConfig
from read_later.models import ConversionResult, FeedItem, PageMetadata, ParsedFeed


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda level, log_file=None: None)
    path = tmp_path / "config.xml"
    path.write_text(
        "<config><database><connection-string>"
        f"sqlite:///{tmp_path / 'library.db'}"
        "</connection-string></database></config>",
        encoding="utf-8",
    )
    return str(path)


def _fake_feed(url, timeout=None):
    return ParsedFeed(
        title="CLI Feed",
        description="",
        link=url,
        items=[
            FeedItem(
                title="Older",
                link="https://example.com/older",
                description="Old body",
                pub_date="Mon, 01 Jan 2024 10:00:00 GMT",
            ),
            FeedItem(
                title="Newer",
                link="https://example.com/newer",
                description="New body",
                pub_date="Tue, 02 Jan 2024 10:00:00 GMT",
            ),
        ],
    )


def _run(config_file, *args):
    return cli.main(["--config", config_file, *args])


def _article_ids(output):
    return [line.split("\t")[0] for line in output.strip().splitlines()]


def test_configure_logging_defaults_to_console_only():
    original_handlers = list(logging.getLogger().handlers)
    for handler in logging.getLogger().handlers[:]:
        logging.getLogger().removeHandler(handler)

    try:
        cli.configure_logging("INFO")

        handlers = logging.getLogger().handlers
        assert any(isinstance(handler, logging.StreamHandler) for handler in handlers)
        assert not any(isinstance(handler, logging.FileHandler) for handler in handlers)
    finally:
        for handler in logging.getLogger().handlers[:]:
            logging.getLogger().removeHandler(handler)
            handler.close()
        for handler in original_handlers:
            logging.getLogger().addHandler(handler)


def test_configure_logging_with_log_file_creates_file_handler(tmp_path):
    original_handlers = list(logging.getLogger().handlers)
    for handler in logging.getLogger().handlers[:]:
        logging.getLogger().removeHandler(handler)

    try:
        log_path = tmp_path / "logs" / "custom.log"
        cli.configure_logging("INFO", str(log_path))

        assert log_path.exists()
        handlers = logging.getLogger().handlers
        assert any(isinstance(handler, logging.FileHandler) for handler in handlers)
    finally:
        for handler in logging.getLogger().handlers[:]:
            logging.getLogger().removeHandler(handler)
            handler.close()
        for handler in original_handlers:
            logging.getLogger().addHandler(handler)


def test_configure_logging_quiets_http_libraries_unless_debug():
    original_handlers = list(logging.getLogger().handlers)
    original_level = logging.getLogger().level
    quiet = {name: logging.getLogger(name).level for name in cli.QUIET_LOGGERS}

    try:
        cli.configure_logging("info")
        assert logging.getLogger().level == logging.INFO
        assert logging.getLogger("urllib3").level == logging.WARNING
        formatter = logging.getLogger().handlers[0].formatter
        assert "%(threadName)s" in formatter._fmt

        cli.configure_logging("DEBUG")
        assert logging.getLogger("httpx").level == logging.DEBUG
    finally:
        for handler in logging.getLogger().handlers[:]:
            logging.getLogger().removeHandler(handler)
            handler.close()
        for handler in original_handlers:
            logging.getLogger().addHandler(handler)
        logging.getLogger().setLevel(original_level)
        for name, level in quiet.items():
            logging.getLogger(name).setLevel(level)


def test_configure_logging_rejects_unknown_level():
    with pytest.raises(ValueError):
        cli.configure_logging("CHATTY")


def test_main_cli_overrides_logging(monkeypatch):
    captured = {}

    def fake_configure(level, log_file=None):
        captured["level"] = level
        captured["file"] = log_file

    monkeypatch.setattr(cli, "configure_logging", fake_configure)
    monkeypatch.setattr(
        cli,
        "parse_app_config",
        lambda path: AppConfig(
            database=DatabaseConfig(connection_string="sqlite:///:memory:"),
            logging=LoggingConfig(level="INFO", file="config.log"),
        ),
    )

    exit_code = cli.main(["--log-level", "DEBUG", "--log-file", "cli.log", "stats"])

    assert exit_code == 0
    assert captured == {"level": "DEBUG", "file": "cli.log"}


def test_subscribe_list_and_annotate(config_file, monkeypatch, capsys):
    monkeypatch.setattr(library, "fetch_and_parse", _fake_feed)

    assert _run(config_file, "subscribe", "https://example.com/rss", "--category", "Tech") == 0
    assert "with 2 articles" in capsys.readouterr().out

    assert _run(config_file, "feeds") == 0
    assert "Tech\tCLI Feed\thttps://example.com/rss" in capsys.readouterr().out

    assert _run(config_file, "list") == 0
    output = capsys.readouterr().out
    assert [line.split("\t")[3] for line in output.strip().splitlines()] == [
        "Newer",
        "Older",
    ]
    newer_id = _article_ids(output)[0]

    assert _run(config_file, "tag", newer_id, "python") == 0
    assert _run(config_file, "note", newer_id, "Worth a reread") == 0
    assert _run(config_file, "read", newer_id) == 0
    capsys.readouterr()

    assert _run(config_file, "list", "--unread") == 0
    assert capsys.readouterr().out.strip().endswith("Older")

    assert _run(config_file, "list", "--tag", "python") == 0
    assert _article_ids(capsys.readouterr().out) == [newer_id]

    assert _run(config_file, "show", newer_id) == 0
    shown = capsys.readouterr().out
    assert shown.startswith("# Newer\n\nNew body")
    assert "## Notes\n\nWorth a reread" in shown
    assert "## Tags\n\npython" in shown


def test_highlight_and_export(config_file, monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(library, "fetch_and_parse", _fake_feed)
    _run(config_file, "subscribe", "https://example.com/rss")
    capsys.readouterr()
    _run(config_file, "search", "old body")
    (article_id,) = _article_ids(capsys.readouterr().out)

    assert _run(config_file, "highlight", article_id, "Old", "--color", "blue") == 0
    capsys.readouterr()

    export_dir = tmp_path / "exports"
    export_dir.mkdir()
    assert _run(config_file, "export", article_id, "--format", "json", "--output", str(export_dir)) == 0

    data = json.loads((export_dir / "older.json").read_text(encoding="utf-8"))
    assert data["title"] == "Older"
    assert data["highlights"][0]["text"] == "Old"
    assert data["highlights"][0]["color"] == "blue"


def test_fetch_saves_page(config_file, monkeypatch, capsys):
    monkeypatch.setattr(
        library,
        "convert_url",
        lambda url, timeout=None, extractor="builtin": ConversionResult(
            markdown="Converted",
            title="Fetched Page",
            metadata=PageMetadata(title="Fetched Page", author="", description="", url=url),
        ),
    )

    assert _run(config_file, "fetch", "https://example.com/page", "--save") == 0
    article_id = capsys.readouterr().out.strip()

    assert _run(config_file, "list", "--tag", library.URL_FETCHED_TAG) == 0
    assert _article_ids(capsys.readouterr().out) == [article_id]


def test_summarize_without_api_key_fails(config_file, monkeypatch, capsys):
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    monkeypatch.setattr(library, "fetch_and_parse", _fake_feed)
    _run(config_file, "subscribe", "https://example.com/rss")
    capsys.readouterr()
    _run(config_file, "list")
    article_id = _article_ids(capsys.readouterr().out)[0]

    assert _run(config_file, "summarize", article_id) == 1


def test_summarize_with_stored_key(config_file, monkeypatch, capsys):
    monkeypatch.setattr(library, "fetch_and_parse", _fake_feed)
    captured = {}

    def fake_summarize(content, api_key, model, prompt=None, *, timeout):
        captured.update(api_key=api_key, model=model, prompt=prompt)
        return "Short version"

    monkeypatch.setattr(library, "summarize_text", fake_summarize)

    _run(config_file, "subscribe", "https://example.com/rss")
    assert _run(config_file, "set-api-key", "sk-cli") == 0
    capsys.readouterr()
    _run(config_file, "search", "new body")
    (article_id,) = _article_ids(capsys.readouterr().out)

    assert _run(config_file, "summarize", article_id, "--prompt", "brief") == 0

    assert capsys.readouterr().out.strip() == "Short version"
    assert captured["api_key"] == "sk-cli"
    assert captured["prompt"].startswith("Provide a brief")


def test_prompts_and_custom_prompt(config_file, capsys):
    assert _run(config_file, "add-prompt", "Haiku", "Write a haiku:") == 0
    prompt_id = capsys.readouterr().out.strip()

    assert _run(config_file, "prompts") == 0
    output = capsys.readouterr().out
    assert "* default\tDefault Summary" in output
    assert f"  {prompt_id}\tHaiku" in output


def test_missing_article_returns_error(config_file):
    assert _run(config_file, "show", "article_missing") == 1


def test_blank_highlight_is_a_usage_error(config_file, monkeypatch, capsys):
    monkeypatch.setattr(library, "fetch_and_parse", _fake_feed)
    _run(config_file, "subscribe", "https://example.com/rss")
    capsys.readouterr()
    _run(config_file, "search", "new body")
    (article_id,) = _article_ids(capsys.readouterr().out)

    with pytest.raises(SystemExit) as excinfo:
        _run(config_file, "highlight", article_id, "   ")

    assert excinfo.value.code == 2


def test_missing_config_returns_error(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda level, log_file=None: None)

    assert cli.main(["--config", str(tmp_path / "nope.xml"), "stats"]) == 1
