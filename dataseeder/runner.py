"""
Entry point shared by the command line and the Azure Functions app.
"""

import logging
from typing import Dict

from azure.core.exceptions import AzureError

from dataseeder.config import extract_parameters, validate_parameters
from dataseeder.connections import (create_cosmos_gateway,
                                    create_servicebus_client)
from dataseeder.exporter import CosmosDbExporter
from dataseeder.importer import SeederService
from dataseeder.servicebus_seeder import ServiceBusSeeder


def _error(message: str) -> Dict:
    logging.error(message)
    return {"status": "error", "error": message}


async def run_data_seeder(body: Dict) -> Dict:
    """
    Run a seed or export according to the request parameters.

    Args:
        body: Parameters dictionary:
            - target_type: 'cosmos', 'servicebus' or 'redis'
            - source_type: 'files' (default) or 'cosmos' (export)
            - path: Seed file folder, or the output folder of an export
            - database / container: Optional filters
            - drop: Drop and recreate containers before seeding
            - page_size / max_ru / force_update: Export tuning
            - connection_string, key_vault_name + cosmos_secret_name,
              use_managed_identity + cosmos_url: Cosmos DB authentication
            - servicebus_connection_string: Service Bus connection

    Returns:
        Dictionary with 'status' ('success' or 'error') and the run results
    """
    params = extract_parameters(body)
    try:
        validate_parameters(params)
    except ValueError as e:
        return _error(str(e))

    target_type = params["target_type"]
    source_type = params["source_type"]
    logging.info(f"Starting data seeder. Target: {target_type}, Source: {source_type}, Path: {params['path']}")

    try:
        if target_type == "cosmos" and source_type == "files":
            async with create_cosmos_gateway(params) as gateway:
                summary = await SeederService(gateway).run(
                    params["path"], params["drop"], params["database"]
                )
            failed = sum(c["failed"] for db in summary.values() for c in db.values())
            return {
                "status": "success" if failed == 0 else "completed_with_errors",
                "target_type": target_type,
                "source_type": source_type,
                "databases": summary,
            }

        if target_type == "cosmos" and source_type == "cosmos":
            logging.info(
                f"Exporting database '{params['database']}' to {params['path']} "
                f"(page size {params['page_size']}, max RU {params['max_ru']}, "
                f"force update {params['force_update']})"
            )
            async with create_cosmos_gateway(params) as gateway:
                exporter = CosmosDbExporter(
                    gateway,
                    page_size=params["page_size"],
                    max_ru=params["max_ru"],
                    force_update=params["force_update"],
                )
                success = await exporter.export_database(
                    params["database"], params["path"], params["container"]
                )
            if not success:
                return _error(f"Export of database '{params['database']}' finished with errors")
            return {
                "status": "success",
                "target_type": target_type,
                "source_type": source_type,
                "database": params["database"],
                "output_path": params["path"],
            }

        if target_type == "servicebus":
            async with create_servicebus_client(params) as client:
                results = await ServiceBusSeeder(client).run(params["path"])
            return {
                "status": "success" if results["failed"] == 0 else "completed_with_errors",
                "target_type": target_type,
                "messages": results,
            }

        if target_type == "redis":
            return _error("Redis seeding not implemented yet.")

        return _error(f"Unsupported combination: target '{target_type}', source '{source_type}'")

    except (FileNotFoundError, ValueError, AzureError) as e:
        return _error(f"Data seeder failed: {str(e)}")
