"""CLI utilities module."""

from gfc.cli.utils.auth import build_orchestrator, get_api_credentials, get_config, open_store, with_api_client
from gfc.cli.utils.options import (
    BASE_URL_OPTION,
    DB_PATH_OPTION,
    OUTPUT_FORMAT_OPTION,
    OUTPUT_PATH_OPTION,
    OutputFormat,
    SyncMode,
)
from gfc.cli.utils.output import build_records_table, handle_json_output, records_to_json

__all__ = [
    "BASE_URL_OPTION",
    "DB_PATH_OPTION",
    "OUTPUT_FORMAT_OPTION",
    "OUTPUT_PATH_OPTION",
    "OutputFormat",
    "SyncMode",
    "build_orchestrator",
    "build_records_table",
    "get_api_credentials",
    "get_config",
    "handle_json_output",
    "open_store",
    "records_to_json",
    "with_api_client",
]
