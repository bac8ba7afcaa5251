"""Command-line interface for the read_later application."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

from . import library
from .articles import EXTRACTORS, convert_url
from .config import AppConfig, parse_app_config, parse_env_config
from .exceptions import ReadLaterError
from .models import Article
from .renderers import FORMATS, export_article, write_export
from .settings import SummarySettings
from .store import ArticleStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
QUIET_LOGGERS = ("urllib3", "httpx", "openai", "trafilatura")


def _print_articles(articles: Iterable[Article]) -> None:
    for article in articles:
        state = "read" if article.is_read else "unread"
        date = article.publish_date.strftime("%Y-%m-%d")
        print(f"{article.id}\t{state}\t{date}\t{article.title}")


def _cmd_subscribe(args, store: ArticleStore, config: AppConfig) -> int:
    feed_id, count = library.subscribe_feed(
        store, args.url, category=args.category, timeout=config.http_timeout
    )
    print(f"Subscribed {feed_id} with {count} articles")
    return 0


def _cmd_refresh(args, store: ArticleStore, config: AppConfig) -> int:
    results = library.refresh_all_feeds(
        store, concurrency=config.concurrency, timeout=config.http_timeout
    )
    print(f"Refreshed {len(results)} feeds, {sum(results.values())} new articles")
    return 0


def _cmd_feeds(args, store: ArticleStore, config: AppConfig) -> int:
    for feed in store.get_feeds():
        print(f"{feed.id}\t{feed.category}\t{feed.title}\t{feed.url}")
    return 0


def _cmd_fetch(args, store: ArticleStore, config: AppConfig) -> int:
    extractor = args.extractor or config.extractor
    if args.save:
        article_id = library.import_url(
            store, args.url, timeout=config.http_timeout, extractor=extractor
        )
        print(article_id)
    else:
        result = convert_url(args.url, timeout=config.http_timeout, extractor=extractor)
        print(result.markdown)
    return 0


def _cmd_list(args, store: ArticleStore, config: AppConfig) -> int:
    articles = (
        store.get_articles_by_read_state(False) if args.unread else store.get_articles()
    )
    _print_articles(
        library.filter_articles(
            articles, query=args.query, tags=args.tag, sort_by=args.sort
        )
    )
    return 0


def _cmd_search(args, store: ArticleStore, config: AppConfig) -> int:
    _print_articles(library.filter_articles(store.search_articles(args.query)))
    return 0


def _cmd_show(args, store: ArticleStore, config: AppConfig) -> int:
    article = library.get_article_or_raise(store, args.article_id)
    print(export_article(article, "markdown").content)
    return 0


def _cmd_read(args, store: ArticleStore, config: AppConfig) -> int:
    library.mark_read(store, args.article_id, is_read=not args.unread)
    return 0


def _cmd_tag(args, store: ArticleStore, config: AppConfig) -> int:
    article = library.add_tag(store, args.article_id, args.tag)
    print(", ".join(article.tags))
    return 0


def _cmd_untag(args, store: ArticleStore, config: AppConfig) -> int:
    article = library.remove_tag(store, args.article_id, args.tag)
    print(", ".join(article.tags))
    return 0


def _cmd_note(args, store: ArticleStore, config: AppConfig) -> int:
    library.set_notes(store, args.article_id, args.text)
    return 0


def _cmd_highlight(args, store: ArticleStore, config: AppConfig) -> int:
    print(
        library.add_highlight(
            store, args.article_id, args.text, color=args.color, note=args.note
        )
    )
    return 0


def _cmd_delete(args, store: ArticleStore, config: AppConfig) -> int:
    library.get_article_or_raise(store, args.article_id)
    store.delete_article(args.article_id)
    return 0


def _cmd_export(args, store: ArticleStore, config: AppConfig) -> int:
    article = library.get_article_or_raise(store, args.article_id)
    exported = export_article(article, args.format)
    if args.output:
        target = write_export(exported, Path(args.output))
        logger.info("Article exported as %s to %s", args.format.upper(), target)
        print(target)
    else:
        print(exported.content)
    return 0


def _cmd_summarize(args, store: ArticleStore, config: AppConfig) -> int:
    summary = library.summarize_article(
        store,
        args.article_id,
        model=args.model or config.summaries.model,
        prompt_id=args.prompt,
        timeout=config.summaries.timeout,
    )
    print(summary)
    return 0


def _cmd_set_api_key(args, store: ArticleStore, config: AppConfig) -> int:
    SummarySettings(store).api_key = args.key
    return 0


def _cmd_prompts(args, store: ArticleStore, config: AppConfig) -> int:
    settings = SummarySettings(store)
    selected = settings.selected_prompt
    for prompt in settings.all_prompts():
        marker = "*" if prompt.id == selected else " "
        print(f"{marker} {prompt.id}\t{prompt.name}")
    return 0


def _cmd_add_prompt(args, store: ArticleStore, config: AppConfig) -> int:
    print(SummarySettings(store).add_custom_prompt(args.name, args.content).id)
    return 0


def _cmd_stats(args, store: ArticleStore, config: AppConfig) -> int:
    for key, value in library.article_stats(store.get_articles()).items():
        print(f"{key}: {value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Read-later library: feeds, web pages, notes and summaries."
    )
    parser.add_argument(
        "--config",
        default="configs/config.xml",
        help="Path to the main configuration XML file.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g. DEBUG, INFO, WARNING). Overrides config.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file. Overrides config.",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    cmd = commands.add_parser("subscribe", help="Subscribe to an RSS or Atom feed.")
    cmd.add_argument("url")
    cmd.add_argument("--category", default="General")
    cmd.set_defaults(handler=_cmd_subscribe)

    cmd = commands.add_parser("refresh", help="Fetch new items for every feed.")
    cmd.set_defaults(handler=_cmd_refresh)

    cmd = commands.add_parser("feeds", help="List subscribed feeds.")
    cmd.set_defaults(handler=_cmd_feeds)

    cmd = commands.add_parser("fetch", help="Convert a web page to markdown.")
    cmd.add_argument("url")
    cmd.add_argument("--save", action="store_true", help="Save it to the library.")
    cmd.add_argument("--extractor", choices=EXTRACTORS, default=None)
    cmd.set_defaults(handler=_cmd_fetch)

    cmd = commands.add_parser("list", help="List saved articles.")
    cmd.add_argument("--query", default=None)
    cmd.add_argument("--tag", action="append", default=None)
    cmd.add_argument("--sort", choices=library.SORT_KEYS, default="date")
    cmd.add_argument("--unread", action="store_true")
    cmd.set_defaults(handler=_cmd_list)

    cmd = commands.add_parser("search", help="Search titles, content, summaries and tags.")
    cmd.add_argument("query")
    cmd.set_defaults(handler=_cmd_search)

    cmd = commands.add_parser("show", help="Print an article as markdown.")
    cmd.add_argument("article_id")
    cmd.set_defaults(handler=_cmd_show)

    cmd = commands.add_parser("read", help="Mark an article as read.")
    cmd.add_argument("article_id")
    cmd.add_argument("--unread", action="store_true", help="Mark as unread instead.")
    cmd.set_defaults(handler=_cmd_read)

    cmd = commands.add_parser("tag", help="Add a tag to an article.")
    cmd.add_argument("article_id")
    cmd.add_argument("tag")
    cmd.set_defaults(handler=_cmd_tag)

    cmd = commands.add_parser("untag", help="Remove a tag from an article.")
    cmd.add_argument("article_id")
    cmd.add_argument("tag")
    cmd.set_defaults(handler=_cmd_untag)

    cmd = commands.add_parser("note", help="Replace the notes of an article.")
    cmd.add_argument("article_id")
    cmd.add_argument("text")
    cmd.set_defaults(handler=_cmd_note)

    cmd = commands.add_parser("highlight", help="Highlight an excerpt of an article.")
    cmd.add_argument("article_id")
    cmd.add_argument("text")
    cmd.add_argument("--color", default="yellow")
    cmd.add_argument("--note", default=None)
    cmd.set_defaults(handler=_cmd_highlight)

    cmd = commands.add_parser("delete", help="Delete an article.")
    cmd.add_argument("article_id")
    cmd.set_defaults(handler=_cmd_delete)

    cmd = commands.add_parser("export", help="Export an article.")
    cmd.add_argument("article_id")
    cmd.add_argument("--format", choices=list(FORMATS), default="markdown")
    cmd.add_argument(
        "--output", metavar="PATH", help="File or directory to write the export to."
    )
    cmd.set_defaults(handler=_cmd_export)

    cmd = commands.add_parser("summarize", help="Summarize an article with an LLM.")
    cmd.add_argument("article_id")
    cmd.add_argument("--model", default=None)
    cmd.add_argument("--prompt", default=None, help="Prompt id (see 'prompts').")
    cmd.set_defaults(handler=_cmd_summarize)

    cmd = commands.add_parser("set-api-key", help="Store the OpenRouter API key.")
    cmd.add_argument("key")
    cmd.set_defaults(handler=_cmd_set_api_key)

    cmd = commands.add_parser("prompts", help="List summary prompts.")
    cmd.set_defaults(handler=_cmd_prompts)

    cmd = commands.add_parser("add-prompt", help="Save a custom summary prompt.")
    cmd.add_argument("name")
    cmd.add_argument("content")
    cmd.set_defaults(handler=_cmd_add_prompt)

    cmd = commands.add_parser("stats", help="Show library statistics.")
    cmd.set_defaults(handler=_cmd_stats)

    return parser


def _file_handler(log_file: str) -> logging.Handler:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(log_path, encoding="utf-8")


def configure_logging(level_name: str, log_file: Optional[str] = None) -> None:
    """Route read_later logs to stderr and, optionally, a log file.

    Feed refreshes log from worker threads, so records carry the thread name.
    HTTP client libraries stay at WARNING unless DEBUG was asked for.
    """
    log_level = logging.getLevelName(level_name.upper())
    if not isinstance(log_level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(_file_handler(log_file))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    library_level = logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    logger.debug(
        "Logging at %s to %s",
        logging.getLevelName(log_level),
        log_file or "stderr only",
    )


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    store: Optional[ArticleStore] = None
    try:
        app_config = parse_app_config(args.config)

        if app_config.env_file:
            os.environ.update(parse_env_config(app_config.env_file))

        # CLI overrides config
        log_level = args.log_level or app_config.logging.level
        log_file = args.log_file or app_config.logging.file
        configure_logging(log_level, log_file)

        store = ArticleStore(
            app_config.database.connection_string,
            delete_policy=app_config.database.delete_policy,
        )
        store.init()
        return args.handler(args, store, app_config)
    except ValueError as exc:
        parser.error(str(exc))
    except (ReadLaterError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1
    finally:
        if store is not None:
            store.close()
