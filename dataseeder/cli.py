"""
Command line entry point.

Usage:
    dataseeder -t cosmos -p ./seed [--db name] [--drop]
    dataseeder -t cosmos -s cosmos -p ./export --db name [--container c] [--pageSize 100] [--maxRU 400]
    dataseeder -t servicebus -p ./messages
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from dataseeder.config import DEFAULT_MAX_RU, DEFAULT_PAGE_SIZE
from dataseeder.runner import run_data_seeder


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # argparse exits with 0 for --help and 2 for invalid arguments
        return 0 if not e.code else 1

    _setup_logging(args.verbose)

    try:
        result = asyncio.run(run_data_seeder(_to_params(args)))
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130

    logging.info(f"Result: {json.dumps(result, default=str)}")
    return 1 if result["status"] == "error" else 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dataseeder",
        description="Seed Cosmos DB or Service Bus from JSON files, or export Cosmos DB to seed files",
    )
    parser.add_argument(
        "-t", "--targetType", dest="target_type", required=True,
        help="Target type to seed: cosmos, redis, or serviceBus.",
    )
    parser.add_argument(
        "-s", "--sourceType", dest="source_type", default="files",
        help="Source type: files (seed) or cosmos (export). Default: files",
    )
    parser.add_argument(
        "-p", "--path", required=True,
        help="Path to folder containing .json files or parent folder.",
    )
    parser.add_argument("-d", "--db", dest="database", help="Name of the Cosmos DB database.")
    parser.add_argument(
        "-c", "--container",
        help="Name of a single container to export.",
    )
    parser.add_argument("--drop", action="store_true", help="Drop and recreate containers.")

    export_group = parser.add_argument_group("export options")
    export_group.add_argument(
        "--pageSize", dest="page_size", type=int, default=DEFAULT_PAGE_SIZE,
        help=f"Documents per page (default: {DEFAULT_PAGE_SIZE}, maximum 1000)",
    )
    export_group.add_argument(
        "--maxRU", dest="max_ru", type=float, default=DEFAULT_MAX_RU,
        help=f"RU budget per page (default: {DEFAULT_MAX_RU})",
    )
    export_group.add_argument(
        "--forceUpdate", dest="force_update", action="store_true",
        help="Rewrite export files even when unchanged.",
    )

    auth_group = parser.add_argument_group("connection options")
    auth_group.add_argument(
        "--connectionString", dest="connection_string",
        help="Cosmos DB connection string (AccountEndpoint=...;AccountKey=...;)",
    )
    auth_group.add_argument(
        "--useManagedIdentity", dest="use_managed_identity", action="store_true",
        help="Authenticate with DefaultAzureCredential (requires --cosmosUrl)",
    )
    auth_group.add_argument("--cosmosUrl", dest="cosmos_url", help="Cosmos DB account endpoint")
    auth_group.add_argument(
        "--keyVaultName", dest="key_vault_name",
        help="Key Vault holding the Cosmos DB key (requires --secretName)",
    )
    auth_group.add_argument("--secretName", dest="cosmos_secret_name", help="Key Vault secret name")
    auth_group.add_argument(
        "--serviceBusConnectionString", dest="servicebus_connection_string",
        help="Service Bus connection string (default: local emulator)",
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    return parser


def _to_params(args: argparse.Namespace) -> dict:
    params = vars(args).copy()
    params.pop("verbose", None)
    return params


def _setup_logging(verbose: bool):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    # Quiet noisy libraries
    logging.getLogger("azure").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
