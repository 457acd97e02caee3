"""
Seeding of Cosmos DB containers from JSON seed files.

The expected layout is one sub-directory per database, each holding the seed
files for that database:

    <path>/<database>/*.json

Files are grouped by their optional seedConfig.container override; files without
one go to a container named after the database.
"""

import logging
import pathlib
from typing import Any, Dict, Optional

from azure.core.exceptions import AzureError
from azure.cosmos import exceptions

from dataseeder.cosmos_gateway import CosmosGateway
from dataseeder.models import PARTITION_KEY_FIELD, ContainerSpec
from dataseeder.seed_files import (SeedFileError,
                                   does_container_need_partition_key,
                                   group_files_by_container,
                                   read_seed_document)


SEED_FILE_PATTERN = "*.json"


def _describe_error(error: AzureError) -> str:
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        return f"Status: {status_code}, Response: {error.message}"
    return str(error.message)


def _failed_result(files) -> Dict[str, int]:
    return {"successful": 0, "failed": len(files), "total": len(files)}


def build_document_body(document_id: str, partition_key: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rewrite a payload so its id and partition key fields match the resolved values.

    Existing fields are overwritten in place, missing ones are appended
    (partition key first, then id).
    """
    body = {}
    for key, value in payload.items():
        if key == "id":
            body[key] = document_id
        elif key == PARTITION_KEY_FIELD:
            body[key] = partition_key
        else:
            body[key] = value
    body.setdefault(PARTITION_KEY_FIELD, partition_key)
    body.setdefault("id", document_id)
    return body


class CosmosDbInserter:
    """Creates documents in a single container."""

    def __init__(self, gateway: CosmosGateway, database: str, container: str):
        self.gateway = gateway
        self.database = database
        self.container = container

    async def upsert_document(
        self, document_id: str, partition_key: Optional[str], payload: Dict[str, Any]
    ) -> bool:
        """
        Insert a document, using its id as partition key when none is provided.

        A document that already exists counts as success so a seed can be
        re-run.

        Args:
            document_id: Document id (required)
            partition_key: Partition key value; None or empty falls back to the id
            payload: Document content

        Returns:
            True if the document was created or already existed, False otherwise
        """
        if not document_id:
            logging.error(f"Cannot insert a document without id into container '{self.container}'")
            return False

        was_partition_key_provided = bool(partition_key)
        if not was_partition_key_provided:
            partition_key = document_id

        body = build_document_body(document_id, partition_key, payload)

        try:
            await self.gateway.create_document(self.database, self.container, body)
        except exceptions.CosmosResourceExistsError:
            logging.warning(
                f"Document with id '{document_id}' already exists in container '{self.container}'."
            )
            return True
        except exceptions.CosmosHttpResponseError as e:
            logging.error(
                f"Insert failed for document '{document_id}' in container '{self.container}'. "
                f"Original partition key provided: "
                f"{'Yes' if was_partition_key_provided else 'No (using document ID)'}, "
                f"actual partition key used: '{partition_key}', "
                f"Status: {e.status_code}, Response: {e.message}"
            )
            return False
        except AzureError as e:
            logging.error(
                f"Insert failed for document '{document_id}' in container '{self.container}': {e.message}"
            )
            return False

        insert_type = (
            "with explicit partition key" if was_partition_key_provided
            else "using document ID as partition key"
        )
        logging.info(
            f"Successfully inserted document '{document_id}' {insert_type} "
            f"(pk='{partition_key}') into container '{self.container}'"
        )
        return True


class SeederService:
    """Seeds every database directory found under a parent folder."""

    def __init__(self, gateway: CosmosGateway):
        self.gateway = gateway

    async def run(
        self,
        parent_path: str,
        drop_and_create: bool = False,
        target_database: Optional[str] = None,
    ) -> Dict[str, Dict[str, Dict[str, int]]]:
        """
        Seed databases from seed file directories.

        Args:
            parent_path: Folder holding one sub-directory per database
            drop_and_create: Drop and recreate each container before seeding
            target_database: Only seed the directory with this name

        Returns:
            Per database and container: successful, failed and total counts

        Raises:
            FileNotFoundError: If parent_path is not a directory
        """
        root = pathlib.Path(parent_path)
        if not root.is_dir():
            logging.error(f"Directory not found: {parent_path}")
            raise FileNotFoundError(f"Directory not found: {parent_path}")

        db_dirs = sorted(p for p in root.iterdir() if p.is_dir())
        if target_database:
            db_dirs = [p for p in db_dirs if p.name.lower() == target_database.lower()]
            if not db_dirs:
                logging.warning(f"No directory found for database '{target_database}' in {parent_path}.")
                return {}
        if not db_dirs:
            logging.warning("No subdirectories found in the specified parent folder.")
            return {}

        summary = {}
        for db_dir in db_dirs:
            summary[db_dir.name] = await self.seed_database(db_dir, drop_and_create)
        return summary

    async def seed_database(self, db_dir: pathlib.Path, drop_and_create: bool = False) -> Dict[str, Dict[str, int]]:
        db_name = db_dir.name
        logging.info(f"Seeding database: {db_name}")

        json_files = sorted(db_dir.glob(SEED_FILE_PATTERN))
        groups = group_files_by_container(json_files, db_name)

        try:
            created = await self.gateway.create_database_if_not_exists(db_name)
        except AzureError as e:
            logging.error(f"Failed to create database '{db_name}': {_describe_error(e)}")
            return {name: _failed_result(files) for name, files in groups.items()}
        logging.info(f"Database '{db_name}' {'created' if created else 'already exists'}.")

        if not json_files:
            logging.warning(f"No .json files found in {db_dir}.")
            return {}

        results = {}
        for container_name, files in groups.items():
            spec = ContainerSpec(
                name=container_name,
                needs_explicit_partition_key=does_container_need_partition_key(files),
            )
            logging.info(f"Container '{spec.name}' will be created {spec.partition_strategy}")

            try:
                if drop_and_create:
                    logging.info(f"Dropping and recreating container '{spec.name}' in database '{db_name}'...")
                    await self.gateway.delete_container(db_name, spec.name)
                await self.gateway.create_container_if_not_exists(
                    db_name, spec.name, spec.partition_key_path
                )
            except AzureError as e:
                logging.error(f"Failed to create container '{spec.name}': {_describe_error(e)}")
                results[spec.name] = _failed_result(files)
                continue

            results[spec.name] = await self.seed_container(db_name, spec.name, files)
        return results

    async def seed_container(self, db_name: str, container_name: str, files) -> Dict[str, int]:
        inserter = CosmosDbInserter(self.gateway, db_name, container_name)
        success_count = 0
        fail_count = 0
        total = len(files)

        for current, file in enumerate(files, start=1):
            try:
                document = read_seed_document(file)
                pk_display = document.partition_key_value or "none"
                logging.info(f"Attempting to insert file: {file} (PK: {pk_display})")
                logging.debug(f"File content: {document.payload}")
                inserted = await inserter.upsert_document(
                    document.id, document.partition_key_value, document.payload
                )
            except SeedFileError as e:
                logging.error(f"Exception while processing file: {file}: {e}")
                inserted = False

            if inserted:
                logging.info(f"Seeded: {file}")
                success_count += 1
            else:
                logging.error(f"Failed: {file}")
                fail_count += 1
            logging.info(f"Progress: {current}/{total} ({db_name}/{container_name})")

        logging.info(
            f"Seeding complete for {db_name}/{container_name}. "
            f"Success: {success_count}, Failed: {fail_count}, Total: {total}"
        )
        return {"successful": success_count, "failed": fail_count, "total": total}
