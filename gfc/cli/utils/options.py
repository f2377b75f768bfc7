"""Shared CLI options and enums for commands."""

from enum import StrEnum
from pathlib import Path
from typing import Annotated

import typer


class OutputFormat(StrEnum):
    """Supported output formats across commands."""

    TABLE = "table"
    JSON = "json"


class SyncMode(StrEnum):
    """Sync strategies offered by the sync command."""

    HYBRID = "hybrid"
    FULL = "full"
    INCREMENTAL = "incremental"


# Common typer options
DB_PATH_OPTION = Annotated[
    Path | None,
    typer.Option(
        "--db-path",
        "-d",
        help="Cache database path (defaults to GRAVITY_FORMS_CACHE_DB_PATH)",
    ),
]

BASE_URL_OPTION = Annotated[
    str | None,
    typer.Option(
        "--base-url",
        "-u",
        help="WordPress site URL (auto-detected from GRAVITY_FORMS_BASE_URL env var)",
    ),
]

OUTPUT_PATH_OPTION = Annotated[
    Path | None,
    typer.Option(
        "--output",
        "-o",
        help="Output file path for json format (stdout when omitted)",
    ),
]

OUTPUT_FORMAT_OPTION = Annotated[
    OutputFormat,
    typer.Option(
        "--format",
        "-f",
        help="Output format",
        case_sensitive=False,
    ),
]
