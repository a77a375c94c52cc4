"""Command line interface for the UniProt REST clients.

Examples
--------
Fetch one entry::

    uniprot-rest entry P69905

Stream the first 1000 reviewed human entries to a CSV file::

    uniprot-rest search "organism_id:9606 AND reviewed:true" \
        --limit 1000 --fields accession gene_names --output human.csv

Show page 3 (20 per page) of a query::

    uniprot-rest page "gene:BRCA1" --offset 40 --page-size 20

Map accessions to Ensembl and print the results once the job has finished::

    uniprot-rest map P05067 P12345 --to Ensembl
    uniprot-rest map-results <job-id>
"""

from __future__ import annotations

import argparse
from itertools import islice
import json
import logging
from pathlib import Path
import sys
from typing import Any, Iterable, Sequence

import pandas as pd

from .config import (
    ConfigError,
    build_entry,
    build_id_mapping,
    build_search,
    build_transport,
    load_config,
)
from .exceptions import InvalidInputError, UniProtError
from .logging_utils import configure_logging
from .pagination import ALLOWED_PAGE_SIZES
from .query import ResultFormat, SearchOptions

LOGGER = logging.getLogger(__name__)

DEFAULT_LOG_LEVEL = "INFO"


def _serialise_cell(value: Any) -> Any:
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    return value


def records_to_frame(records: Iterable[dict[str, Any]]) -> pd.DataFrame:
    """Flatten JSON records into a table; nested lists become JSON strings."""

    frame = pd.json_normalize(list(records))
    for column in frame.columns:
        if frame[column].dtype == object:
            frame[column] = frame[column].map(_serialise_cell)
    return frame


def _dump(data: Any) -> None:
    sys.stdout.write(json.dumps(data, ensure_ascii=False, indent=2) + "\n")


def _cmd_entry(args: argparse.Namespace, config: Any) -> int:
    with build_transport(config) as transport:
        client = build_entry(config, transport)
        if args.fields:
            entry = client.get_with_fields(args.accession, args.fields)
        else:
            entry = client.get(args.accession, args.format)
    if args.format != ResultFormat.JSON.value and not args.fields:
        sys.stdout.write(entry["body"])
    else:
        _dump(entry)
    return 0


def _cmd_search(args: argparse.Namespace, config: Any) -> int:
    options = SearchOptions(
        size=args.size, fields=tuple(args.fields or ()), include_isoform=args.isoforms
    )
    with build_transport(config) as transport:
        results = build_search(config, transport).search(args.query, options)
        stream = islice(results, args.limit) if args.limit else results
        if args.output:
            frame = records_to_frame(stream)
            output = Path(args.output)
            output.parent.mkdir(parents=True, exist_ok=True)
            frame.to_csv(output, index=False)
            LOGGER.info("Wrote %d records to %s", len(frame), output)
        else:
            for record in stream:
                sys.stdout.write(json.dumps(record, ensure_ascii=False) + "\n")
    if results.failed:
        LOGGER.error(
            "Search stopped early after %d records: %s", results.position, results.error
        )
        return 1
    return 0


def _cmd_count(args: argparse.Namespace, config: Any) -> int:
    with build_transport(config) as transport:
        total = build_search(config, transport).get_total_count(args.query)
    sys.stdout.write(f"{total}\n")
    return 0


def _cmd_page(args: argparse.Namespace, config: Any) -> int:
    options = SearchOptions(fields=tuple(args.fields or ()))
    with build_transport(config) as transport:
        view = build_search(config, transport).get_paginated_results(
            args.query, args.offset, args.page_size, options
        )
    _dump(view.to_dict())
    return 0 if view.complete else 1


def _cmd_map(args: argparse.Namespace, config: Any) -> int:
    with build_transport(config) as transport:
        job_id = build_id_mapping(config, transport).submit(
            args.from_db, args.to_db, args.ids, args.tax_id
        )
    sys.stdout.write(f"{job_id}\n")
    return 0


def _cmd_map_results(args: argparse.Namespace, config: Any) -> int:
    with build_transport(config) as transport:
        client = build_id_mapping(config, transport)
        for item in client.iter_results(args.job_id, args.size):
            sys.stdout.write(json.dumps(item, ensure_ascii=False) + "\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uniprot-rest", description="Query the UniProtKB REST API"
    )
    parser.add_argument("--config", help="Optional YAML configuration file")
    parser.add_argument(
        "--log-level", default=DEFAULT_LOG_LEVEL, help="Logging level (e.g. INFO)"
    )
    parser.add_argument(
        "--log-format",
        default="human",
        choices=["human", "json"],
        help="Logging output format",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    entry = sub.add_parser("entry", help="Retrieve a single entry")
    entry.add_argument("accession")
    entry.add_argument(
        "--format",
        default=ResultFormat.JSON.value,
        choices=[item.value for item in ResultFormat],
    )
    entry.add_argument("--fields", nargs="*", help="Return fields (JSON only)")
    entry.set_defaults(handler=_cmd_entry)

    search = sub.add_parser("search", help="Iterate over all matching entries")
    search.add_argument("query")
    search.add_argument("--limit", type=int, default=0, help="Stop after N records")
    search.add_argument("--size", type=int, default=500, help="Records per request")
    search.add_argument("--fields", nargs="*")
    search.add_argument(
        "--isoforms", action="store_true", default=None, help="Include isoforms"
    )
    search.add_argument("--output", help="Write a CSV file instead of JSON lines")
    search.set_defaults(handler=_cmd_search)

    count = sub.add_parser("count", help="Print the number of matching entries")
    count.add_argument("query")
    count.set_defaults(handler=_cmd_count)

    page = sub.add_parser("page", help="Show one offset based page")
    page.add_argument("query")
    page.add_argument("--offset", type=int, default=0)
    page.add_argument(
        "--page-size", type=int, default=ALLOWED_PAGE_SIZES[0], choices=ALLOWED_PAGE_SIZES
    )
    page.add_argument("--fields", nargs="*")
    page.set_defaults(handler=_cmd_page)

    mapping = sub.add_parser("map", help="Submit an ID mapping job and print its id")
    mapping.add_argument("ids", nargs="+")
    mapping.add_argument("--from", dest="from_db", default="UniProtKB_AC-ID")
    mapping.add_argument("--to", dest="to_db", required=True)
    mapping.add_argument("--tax-id", type=int)
    mapping.set_defaults(handler=_cmd_map)

    map_results = sub.add_parser(
        "map-results", help="Print the results of a finished ID mapping job"
    )
    map_results.add_argument("job_id")
    map_results.add_argument("--size", type=int, default=500)
    map_results.set_defaults(handler=_cmd_map_results)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``uniprot-rest`` command.

    Returns ``0`` on success, ``1`` for API or network failures and incomplete
    results, and ``2`` for invalid input or configuration.
    """

    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, log_format=args.log_format)
    try:
        config = load_config(args.config)
        return int(args.handler(args, config))
    except (InvalidInputError, ConfigError) as exc:
        LOGGER.error("%s", exc)
        return 2
    except UniProtError as exc:
        LOGGER.error("%s", exc.detailed_message())
        return 1


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
