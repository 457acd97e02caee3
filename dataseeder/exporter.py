"""
Export of Cosmos DB containers back to seed files.

Each document is written to <output>/<database>/<container>/<id>.json in the
seed file format. Existing files act as a change-detection cache: a document
whose rendered content matches the file on disk is skipped.

Containers with a partition key path are read one partition key range at a
time; containers without one are read with plain continuation-token paging.
Both strategies share the same page loop, and the page size of that loop is
adapted after every page to keep the request charge under the RU budget.
"""

import asyncio
import json
import logging
import pathlib
from typing import Any, Dict, Optional, Tuple

from azure.core.exceptions import AzureError
from azure.cosmos import exceptions

from dataseeder.config import DEFAULT_MAX_RU, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from dataseeder.cosmos_gateway import CosmosGateway
from dataseeder.models import (SEED_CONFIG, SEED_DATA, SYSTEM_FIELD_PREFIX,
                               ExportCounts, ExportOutcome, PartitionKeyRange)
from dataseeder.ru_manager import RUBudgetState, adjust_page_size


EXPORT_FILE_SUFFIX = ".json"
JSON_INDENT = 2
PATH_SEPARATORS = ("/", "\\")


# ============================================================================
# DOCUMENT RENDERING
# ============================================================================


def strip_system_fields(document: Dict[str, Any]) -> Dict[str, Any]:
    """Drop top-level fields managed by Cosmos DB (_rid, _self, _etag, _ts, ...)."""
    return {k: v for k, v in document.items() if not k.startswith(SYSTEM_FIELD_PREFIX)}


def extract_partition_key(document: Dict[str, Any], partition_key_path: Optional[str]) -> Optional[str]:
    """
    Read the partition key value of a document.

    Args:
        document: Document as returned by Cosmos DB
        partition_key_path: Path without leading slash (e.g. 'pk' or 'tenant/id')

    Returns:
        The value as a string, or None when there is no path or no value
    """
    if not partition_key_path:
        return None

    value: Any = document
    for part in partition_key_path.strip("/").split("/"):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]

    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return json.dumps(value)
    return str(value)


def build_export_record(
    document: Dict[str, Any],
    document_id: str,
    partition_key: Optional[str],
    database: str,
    container: str,
) -> Dict[str, Any]:
    seed_config = {"id": document_id, "db": database, "container": container}
    if partition_key:
        seed_config["pk"] = partition_key
    return {SEED_CONFIG: seed_config, SEED_DATA: strip_system_fields(document)}


def render_export_record(record: Dict[str, Any]) -> str:
    return json.dumps(record, indent=JSON_INDENT, ensure_ascii=False)


def content_matches(existing: str, rendered: str) -> bool:
    """Compare file contents, ignoring leading and trailing whitespace."""
    return existing.strip() == rendered.strip()


def export_file_name(document_id: str) -> str:
    """
    File name for a document id.

    '%' and path separators are percent-encoded so distinct ids never share a
    file and every file stays inside its container folder.
    """
    safe_id = document_id.replace("%", "%25")
    for separator in PATH_SEPARATORS:
        safe_id = safe_id.replace(separator, f"%{ord(separator):02X}")
    return f"{safe_id}{EXPORT_FILE_SUFFIX}"


def write_export_file(path: pathlib.Path, content: str):
    path.write_text(content, encoding="utf-8")


# ============================================================================
# EXPORTER
# ============================================================================


class CosmosDbExporter:
    """
    Exports Cosmos DB containers to seed files with adaptive RU management.

    Attributes:
        gateway: Gateway used for every request of the run
        page_size: Configured page size, capped at MAX_PAGE_SIZE
        max_ru: RU budget for a single page
        force_update: Rewrite files even when their content is unchanged
    """

    def __init__(
        self,
        gateway: CosmosGateway,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_ru: float = DEFAULT_MAX_RU,
        force_update: bool = False,
        sleep=asyncio.sleep,
    ):
        self.gateway = gateway
        self.page_size = min(page_size, MAX_PAGE_SIZE)
        self.max_ru = max_ru
        self.force_update = force_update
        self._sleep = sleep

    async def export_database(
        self, database: str, output_path: str, container: Optional[str] = None
    ) -> bool:
        """
        Export every container of a database, or only the named one.

        Args:
            database: Database name
            output_path: Root folder of the export
            container: Optional container filter (case-insensitive)

        Returns:
            True if every selected container was exported successfully
        """
        pathlib.Path(output_path).mkdir(parents=True, exist_ok=True)

        containers = await self.gateway.list_containers(database)
        if not containers:
            logging.warning(f"No containers found in database: {database}")
            return False

        if container:
            containers = [c for c in containers if c.lower() == container.lower()]
            if not containers:
                logging.error(f"Container '{container}' not found in database '{database}'")
                return False

        all_successful = True
        for container_name in containers:
            logging.info(f"Exporting container: {container_name}")
            try:
                if not await self.export_container(database, container_name, output_path):
                    all_successful = False
            except AzureError as e:
                logging.error(f"Export of container '{container_name}' failed: {e.message}")
                all_successful = False
        return all_successful

    async def export_container(self, database: str, container: str, output_path: str) -> bool:
        container_path = pathlib.Path(output_path) / database / container
        container_path.mkdir(parents=True, exist_ok=True)

        partition_key_path = await self.gateway.get_partition_key_path(database, container)
        logging.info(f"Container '{container}' partition key path: {partition_key_path or 'None'}")

        total_count = await self.gateway.count_documents(database, container)
        logging.info(f"Container '{container}' contains approximately {total_count} documents")

        context = _ExportContext(database, container, container_path, partition_key_path, total_count)

        if partition_key_path:
            counts, success = await self._export_by_partition_ranges(context)
        else:
            counts, success = await self._export_by_paging(context)

        logging.info(
            f"Container '{container}' export {'completed' if success else 'finished with errors'}. "
            f"Exported: {counts.exported}, Updated: {counts.updated}, Skipped: {counts.skipped}, "
            f"Total RU Consumed: {counts.ru_consumed:.2f}"
        )
        return success

    async def _export_by_partition_ranges(self, context: "_ExportContext") -> Tuple[ExportCounts, bool]:
        ranges = await self.gateway.read_partition_key_ranges(context.database, context.container)
        if not ranges:
            logging.warning(
                f"No partition key ranges reported for container '{context.container}', "
                f"falling back to standard paging"
            )
            return await self._export_by_paging(context)

        logging.info(f"Using partition key optimization for container: {context.container}")
        logging.info(f"Found {len(ranges)} partition key ranges")

        success = True
        for pk_range in ranges:
            logging.debug(
                f"Processing partition key range {pk_range.id}: "
                f"{pk_range.min_inclusive!r} to {pk_range.max_exclusive!r}"
            )
            if not await self._run_page_loop(context, pk_range):
                success = False
        return context.counts, success

    async def _export_by_paging(self, context: "_ExportContext") -> Tuple[ExportCounts, bool]:
        logging.info(f"Using standard paging for container: {context.container}")
        success = await self._run_page_loop(context)
        return context.counts, success

    async def _run_page_loop(
        self, context: "_ExportContext", pk_range: Optional[PartitionKeyRange] = None
    ) -> bool:
        """
        Read pages until the continuation token runs out.

        Returns:
            False if a request failed and the loop was stopped early
        """
        ru_state = RUBudgetState.initial(self.max_ru, self.page_size)
        continuation_token = None
        scope = f"partition key range {pk_range.id}" if pk_range else f"container {context.container}"

        while True:
            try:
                page = await self.gateway.read_document_page(
                    context.database,
                    context.container,
                    ru_state.current_page_size,
                    continuation_token,
                    pk_range,
                )
            except exceptions.CosmosHttpResponseError as e:
                logging.error(
                    f"Failed to read documents for {scope}. "
                    f"Status: {e.status_code}, Response: {e.message}"
                )
                return False
            except AzureError as e:
                logging.error(f"Failed to read documents for {scope}: {e.message}")
                return False

            context.counts.ru_consumed += page.request_charge
            for document in page.documents:
                context.counts.record(self.process_document(document, context))
            continuation_token = page.continuation_token

            ru_state = adjust_page_size(ru_state, page.request_charge)
            self._report_progress(context, ru_state)
            if ru_state.last_delay_ms > 0:
                await self._sleep(ru_state.last_delay_ms / 1000)

            if not continuation_token:
                return True

    def process_document(self, document: Dict[str, Any], context: "_ExportContext") -> ExportOutcome:
        """
        Write one document to its seed file if it is new or changed.

        Returns:
            EXPORTED for a new file, UPDATED for a rewritten one, SKIPPED otherwise
        """
        document_id = document.get("id")
        if not document_id:
            logging.warning(f"Document without ID found in container: {context.container}")
            return ExportOutcome.SKIPPED

        document_id = str(document_id)
        file_path = context.container_path / export_file_name(document_id)
        partition_key = extract_partition_key(document, context.partition_key_path)
        record = build_export_record(
            document, document_id, partition_key, context.database, context.container
        )
        rendered = render_export_record(record)

        try:
            existed = file_path.exists()
            if existed and not self.force_update:
                if content_matches(file_path.read_text(encoding="utf-8"), rendered):
                    return ExportOutcome.SKIPPED
            write_export_file(file_path, rendered)
        except OSError as e:
            logging.error(f"Error processing document '{document_id}' in container {context.container}: {e}")
            return ExportOutcome.SKIPPED

        return ExportOutcome.UPDATED if existed else ExportOutcome.EXPORTED

    def _report_progress(self, context: "_ExportContext", ru_state: RUBudgetState):
        counts = context.counts
        percentage = (counts.processed * 100.0) / context.total_count if context.total_count > 0 else 0
        logging.info(
            f"Progress: {percentage:.1f}% ({counts.processed}/{context.total_count}) - "
            f"Exported: {counts.exported}, Updated: {counts.updated}, Skipped: {counts.skipped}, "
            f"Current Page Size: {ru_state.current_page_size}, "
            f"Total RU Consumed: {counts.ru_consumed:.2f}"
        )


class _ExportContext:
    """Per-container state shared by the page loops of one export."""

    def __init__(
        self,
        database: str,
        container: str,
        container_path: pathlib.Path,
        partition_key_path: Optional[str],
        total_count: int,
    ):
        self.database = database
        self.container = container
        self.container_path = container_path
        self.partition_key_path = partition_key_path
        self.total_count = total_count
        self.counts = ExportCounts()
