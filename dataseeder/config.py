"""
Run parameters shared by the command line and the Azure Functions surface.

Both surfaces build the same parameter dictionary; extract_parameters() applies
defaults and validate_parameters() rejects unusable combinations.
"""

from typing import Any, Dict


# Local emulator defaults
EMULATOR_ENDPOINT = "https://localhost:8081"
EMULATOR_KEY = "C2y6yDjf5/R+ob0N8A7Cgv30VRDJIWEHLM+4QDU5DE2nQ9nDuVTqobD4b8mGGyPMbIZnqyMsEcaGQy67XIw/Jw=="
SERVICEBUS_EMULATOR_CONNECTION_STRING = (
    "Endpoint=sb://localhost/;SharedAccessKeyName=admin;"
    "SharedAccessKey=admin;UseDevelopmentEmulator=true;"
)

# Export paging defaults
DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000
DEFAULT_MAX_RU = 400

TARGET_TYPES = ("cosmos", "servicebus", "redis")
SOURCE_TYPES = ("files", "cosmos")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    return bool(value)


def _as_int(value: Any, default: int) -> int:
    try:
        value = int(value)
    except (ValueError, TypeError):
        return default
    return value if value >= 1 else default


def extract_parameters(body: Dict) -> Dict:
    """
    Extract run parameters from a request body or parsed command line.

    Args:
        body: Raw parameters dictionary

    Returns:
        Dictionary with every parameter present and defaults applied
    """
    page_size = min(_as_int(body.get("page_size"), DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)

    try:
        max_ru = float(body.get("max_ru", DEFAULT_MAX_RU))
    except (ValueError, TypeError):
        max_ru = DEFAULT_MAX_RU
    if max_ru <= 0:
        max_ru = DEFAULT_MAX_RU

    return {
        "target_type": (body.get("target_type") or "").strip().lower(),
        "source_type": (body.get("source_type") or "files").strip().lower(),
        "path": body.get("path"),
        "database": body.get("database") or None,
        "container": body.get("container") or None,
        "drop": _as_bool(body.get("drop", False)),
        "page_size": page_size,
        "max_ru": max_ru,
        "force_update": _as_bool(body.get("force_update", False)),
        "connection_string": body.get("connection_string") or None,
        "use_managed_identity": _as_bool(body.get("use_managed_identity", False)),
        "cosmos_url": body.get("cosmos_url") or None,
        "key_vault_name": body.get("key_vault_name") or None,
        "cosmos_secret_name": body.get("cosmos_secret_name") or None,
        "servicebus_connection_string": (
            body.get("servicebus_connection_string") or SERVICEBUS_EMULATOR_CONNECTION_STRING
        ),
    }


def validate_parameters(params: Dict):
    """
    Validate extracted parameters.

    Raises:
        ValueError: If required parameters are missing or invalid
    """
    missing = [
        k for k, v in {
            "Target type": params["target_type"],
            "Path": params["path"],
        }.items() if not v
    ]
    if missing:
        raise ValueError(f"Missing required parameters: {missing}")

    if params["target_type"] not in TARGET_TYPES:
        raise ValueError(
            f"Unknown target type '{params['target_type']}'. Expected one of {list(TARGET_TYPES)}"
        )
    if params["source_type"] not in SOURCE_TYPES:
        raise ValueError(
            f"Unknown source type '{params['source_type']}'. Expected one of {list(SOURCE_TYPES)}"
        )

    if params["source_type"] == "cosmos":
        if params["target_type"] != "cosmos":
            raise ValueError("Source type 'cosmos' can only be used with target type 'cosmos'")
        if not params["database"]:
            raise ValueError("Exporting from Cosmos DB requires a database name")

    if bool(params["key_vault_name"]) != bool(params["cosmos_secret_name"]):
        raise ValueError(
            "Both 'key_vault_name' AND 'cosmos_secret_name' must be provided together."
        )
    if params["use_managed_identity"] and not params["cosmos_url"]:
        raise ValueError("Managed identity authentication requires 'cosmos_url'")


def parse_connection_string(connection_string: str) -> Dict[str, str]:
    """
    Parse a Cosmos DB connection string.

    Example:
        'AccountEndpoint=https://acc.documents.azure.com:443/;AccountKey=abc==;'
        -> {'AccountEndpoint': 'https://acc.documents.azure.com:443/', 'AccountKey': 'abc=='}

    Raises:
        ValueError: If AccountEndpoint or AccountKey is missing
    """
    settings = {}
    for segment in connection_string.split(";"):
        if not segment.strip():
            continue
        key, separator, value = segment.partition("=")
        if not separator:
            raise ValueError(f"Malformed connection string segment: '{segment}'")
        settings[key.strip()] = value.strip()

    missing = [k for k in ("AccountEndpoint", "AccountKey") if not settings.get(k)]
    if missing:
        raise ValueError(f"Connection string is missing: {missing}")
    return settings
