"""
Seed file parsing, container grouping and partition key inference.

A seed file looks like:

    {
      "seedConfig": {"id": "...", "db": "...", "container": "...", "pk": "..."},
      "seedData": {...}
    }

"container" and "pk" are optional.
"""

import json
import logging
import pathlib
from typing import Any, Dict, Iterable, List, Optional, Union

from dataseeder.models import (PARTITION_KEY_FIELD, SEED_CONFIG, SEED_DATA,
                               SeedDocument)


PathLike = Union[str, pathlib.Path]


class SeedFileError(Exception):
    """Raised when a seed file cannot be read or does not have the expected shape"""
    pass


def load_seed_file(path: PathLike) -> Dict[str, Any]:
    """
    Read and parse a seed file.

    Raises:
        SeedFileError: If the file cannot be read, is not valid JSON or is not
            a JSON object with a seedConfig object
    """
    try:
        content = pathlib.Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise SeedFileError(f"Cannot read {path}: {e}") from e

    try:
        seed = json.loads(content)
    except json.JSONDecodeError as e:
        raise SeedFileError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(seed, dict):
        raise SeedFileError(f"{path} does not contain a JSON object")
    if not isinstance(seed.get(SEED_CONFIG), dict):
        raise SeedFileError(f"Missing '{SEED_CONFIG}' object in {path}")
    return seed


def _optional_string(section: Dict[str, Any], key: str) -> Optional[str]:
    value = section.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise SeedFileError(f"'{key}' must be a string, got {type(value).__name__}")
    return value or None


def has_explicit_partition_key(seed: Dict[str, Any]) -> bool:
    """
    Check whether a parsed seed file declares a non-empty partition key, either
    in seedConfig or inside seedData.
    """
    if _optional_string(seed[SEED_CONFIG], PARTITION_KEY_FIELD):
        return True

    seed_data = seed.get(SEED_DATA)
    if isinstance(seed_data, dict):
        return bool(_optional_string(seed_data, PARTITION_KEY_FIELD))
    return False


def container_override(seed: Dict[str, Any]) -> Optional[str]:
    return _optional_string(seed[SEED_CONFIG], "container")


def parse_seed_document(seed: Dict[str, Any]) -> SeedDocument:
    """
    Build a SeedDocument from a parsed seed file.

    Raises:
        SeedFileError: If seedConfig.id is missing or seedData is not an object
    """
    seed_config = seed[SEED_CONFIG]
    document_id = _optional_string(seed_config, "id")
    if not document_id:
        raise SeedFileError(f"Missing id in {SEED_CONFIG}")

    payload = seed.get(SEED_DATA)
    if not isinstance(payload, dict):
        raise SeedFileError(f"'{SEED_DATA}' must be a JSON object for document '{document_id}'")

    return SeedDocument(
        id=document_id,
        partition_key_value=_optional_string(seed_config, PARTITION_KEY_FIELD),
        payload=payload,
        container=container_override(seed),
    )


def read_seed_document(path: PathLike) -> SeedDocument:
    return parse_seed_document(load_seed_file(path))


def does_container_need_partition_key(files: Iterable[PathLike]) -> bool:
    """
    Decide whether a batch of seed files uses explicit partition keys.

    Any file that cannot be parsed is treated as needing one, so the stricter
    strategy is reported rather than silently ignoring the file.

    Args:
        files: Seed files destined for the same container

    Returns:
        True if at least one document declares a non-empty partition key
    """
    for file in files:
        try:
            if has_explicit_partition_key(load_seed_file(file)):
                return True
        except SeedFileError as e:
            logging.warning(f"Could not analyze file {file} for partition key detection: {e}")
            return True
    return False


def group_files_by_container(
    files: Iterable[PathLike], fallback_container_name: str
) -> Dict[str, List[PathLike]]:
    """
    Group seed files by their target container.

    Files declaring a non-empty seedConfig.container go to that container, all
    others (including files that fail to parse) go to the fallback container.

    Args:
        files: Seed files in enumeration order
        fallback_container_name: Container used when no override is declared

    Returns:
        Mapping of container name to files, in first-seen order
    """
    groups: Dict[str, List[PathLike]] = {}
    for file in files:
        container_name = fallback_container_name
        try:
            container_name = container_override(load_seed_file(file)) or fallback_container_name
        except SeedFileError as e:
            logging.warning(f"Could not parse file {file} for container name detection: {e}")
        groups.setdefault(container_name, []).append(file)
    return groups
