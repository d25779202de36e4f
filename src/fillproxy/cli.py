"""fillproxy CLI: answer range-aggregate queries over hourly-cached fills."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

import click

from fillproxy.cache import HourCache
from fillproxy.config import FillProxyConfig
from fillproxy.engine import QueryEngine
from fillproxy.errors import FillProxyError
from fillproxy.ingestion.base import FillSource
from fillproxy.ingestion.file import FileFillSource
from fillproxy.ingestion.http import HttpFillSource
from fillproxy.processor import log_cache_summary, process_queries
from fillproxy.queries import QueryType, format_result

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _setup_logging(log_level: str) -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _resolve_config(
    ctx: click.Context,
    dataset: str | None,
    url: str | None,
    capacity: int | None,
) -> FillProxyConfig:
    """Merge CLI options over the loaded config file."""
    config: FillProxyConfig = ctx.obj.get("config") or FillProxyConfig()
    source = config.source
    if dataset and url:
        raise click.UsageError("Pass either --dataset or --url, not both.")
    if dataset:
        source = source.model_copy(update={"kind": "file", "path": dataset})
    elif url:
        source = source.model_copy(update={"kind": "http", "url": url})

    cache = config.cache
    if capacity is not None:
        if capacity < 1:
            raise click.BadParameter("must be >= 1", param_hint="'--capacity'")
        cache = cache.model_copy(update={"capacity": capacity})

    return config.model_copy(update={"source": source, "cache": cache})


@contextmanager
def _open_source(config: FillProxyConfig) -> Iterator[FillSource]:
    """Build the configured fill source, closing it afterwards if needed."""
    src = config.source
    if src.kind == "http":
        if not src.url:
            raise click.UsageError("No fills API URL. Pass --url or set [source] url.")
        with HttpFillSource(src.url, timeout=src.timeout) as source:
            yield source
        return

    if not src.path:
        raise click.UsageError("No dataset. Pass --dataset or set [source] path.")
    try:
        source = FileFillSource(src.path)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="'--dataset'") from exc
    yield source


_source_options = [
    click.option(
        "--dataset",
        type=click.Path(exists=True, dir_okay=False),
        default=None,
        help="Dataset file of fills (.jsonl or .csv).",
    ),
    click.option("--url", default=None, help="Base URL of a fills API."),
    click.option(
        "--capacity",
        type=int,
        default=None,
        help="Hour cache capacity in hours (default: 168).",
    ),
]


def source_options(func):
    for option in reversed(_source_options):
        func = option(func)
    return func


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    help="Set logging verbosity.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to fillproxy.toml config file.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str, config_path: str | None) -> None:
    """fillproxy - Range-aggregate queries over hourly-cached fills.

    \b
    Query lines look like:  TYPE START_TIME END_TIME
      C  number of taker trades in (START, END]
      B  number of buy taker trades
      S  number of sell taker trades
      V  USD volume of all fills

    \b
    Quick start:
      fillproxy run --dataset fills.jsonl < queries.txt
      fillproxy query C 1700000000 1700003600 --dataset fills.jsonl
    """
    _setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["config"] = FillProxyConfig.find_and_load(config_path)


@cli.command()
@source_options
@click.option(
    "--input",
    "input_file",
    type=click.File("r"),
    default="-",
    help="File of query lines (default: stdin).",
)
@click.pass_context
def run(
    ctx: click.Context,
    dataset: str | None,
    url: str | None,
    capacity: int | None,
    input_file: TextIO,
) -> None:
    """Answer a stream of queries, one result line per query.

    \b
    Examples:
      fillproxy run --dataset fills.jsonl < queries.txt
      fillproxy run --url http://localhost:8000 --input queries.txt
    """
    config = _resolve_config(ctx, dataset, url, capacity)

    with _open_source(config) as source:
        cache = HourCache(source, capacity=config.cache.capacity)
        engine = QueryEngine(cache)
        try:
            process_queries(engine, input_file, sys.stdout)
        except FillProxyError as exc:
            click.echo(f"Error: {exc}", err=True)
            raise SystemExit(1)
        finally:
            log_cache_summary(cache)


@cli.command()
@click.argument(
    "query_type", type=click.Choice([t.value for t in QueryType]), metavar="QUERY_TYPE"
)
@click.argument("start_time", type=click.IntRange(min=0))
@click.argument("end_time", type=click.IntRange(min=0))
@source_options
@click.pass_context
def query(
    ctx: click.Context,
    query_type: str,
    start_time: int,
    end_time: int,
    dataset: str | None,
    url: str | None,
    capacity: int | None,
) -> None:
    """Answer a single query.

    \b
    Examples:
      fillproxy query V 1700000000 1700003600 --dataset fills.csv
    """
    config = _resolve_config(ctx, dataset, url, capacity)

    with _open_source(config) as source:
        engine = QueryEngine(HourCache(source, capacity=config.cache.capacity))
        try:
            result = engine.evaluate(query_type, start_time, end_time)
        except FillProxyError as exc:
            click.echo(f"Error: {exc}", err=True)
            raise SystemExit(1)

    click.echo(format_result(result))
