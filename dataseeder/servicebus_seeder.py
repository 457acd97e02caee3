"""
Seeding of Service Bus queues and topics from message files.

    <path>/queue/*.json   one message per file, sent to definition.queueName
    <path>/topic/*.json   one message per file, sent to definition.topicName

Message file format:

    {
        "definition": {"queueName": "orders"},
        "msgCustomProperties": {"source": "seed"},
        "msgData": {...}
    }
"""

import json
import logging
import pathlib
from typing import Any, Dict

from azure.servicebus import ServiceBusMessage
from azure.servicebus.aio import ServiceBusClient
from azure.servicebus.exceptions import ServiceBusError


QUEUE_DIR = "queue"
TOPIC_DIR = "topic"
MESSAGE_FILE_PATTERN = "*.json"

# Older message files use the misspelled key
DEFINITION_KEYS = ("definition", "defintion")


class MessageFileError(Exception):
    """Raised when a message file cannot be read or is missing required fields."""


def load_message_file(path: pathlib.Path, is_queue: bool) -> Dict[str, Any]:
    """
    Parse a message file.

    Returns:
        Dictionary with 'entity', 'body' and 'properties'

    Raises:
        MessageFileError: If the file is unreadable or malformed
    """
    try:
        content = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise MessageFileError(f"Could not read message file: {e}") from e

    if not isinstance(content, dict):
        raise MessageFileError("Message file root must be a JSON object")

    definition = next(
        (content[k] for k in DEFINITION_KEYS if isinstance(content.get(k), dict)), None
    )
    if definition is None:
        raise MessageFileError("Missing 'definition' object")

    name_key = "queueName" if is_queue else "topicName"
    entity = definition.get(name_key)
    if not entity or not isinstance(entity, str):
        raise MessageFileError(f"Missing {name_key}")

    if "msgData" not in content:
        raise MessageFileError("Missing 'msgData'")
    data = content["msgData"]
    body = data if isinstance(data, str) else json.dumps(data)

    custom_properties = content.get("msgCustomProperties") or {}
    if not isinstance(custom_properties, dict):
        raise MessageFileError("'msgCustomProperties' must be a JSON object")

    return {"entity": entity, "body": body, "properties": custom_properties}


class ServiceBusSeeder:
    """Sends one message per file to the queues and topics named in the files."""

    def __init__(self, client: ServiceBusClient):
        self.client = client

    async def run(self, parent_path: str) -> Dict[str, int]:
        """
        Send every message file found under the queue and topic folders.

        Returns:
            Counts of sent and failed messages

        Raises:
            FileNotFoundError: If neither folder exists
        """
        root = pathlib.Path(parent_path)
        queue_dir = root / QUEUE_DIR
        topic_dir = root / TOPIC_DIR
        if not queue_dir.is_dir() and not topic_dir.is_dir():
            logging.error(f"No queue or topic directories found in {parent_path}")
            raise FileNotFoundError(f"No queue or topic directories found in {parent_path}")

        results = {"sent": 0, "failed": 0}
        for directory, is_queue in ((queue_dir, True), (topic_dir, False)):
            if not directory.is_dir():
                continue
            for file in sorted(directory.glob(MESSAGE_FILE_PATTERN)):
                logging.info(f"Processing {'queue' if is_queue else 'topic'} file: {file}")
                if await self.send_message_from_file(file, is_queue):
                    results["sent"] += 1
                else:
                    results["failed"] += 1

        logging.info(f"Service Bus seeding complete. Sent: {results['sent']}, Failed: {results['failed']}")
        return results

    async def send_message_from_file(self, file: pathlib.Path, is_queue: bool) -> bool:
        try:
            message_file = load_message_file(file, is_queue)
            message = ServiceBusMessage(
                message_file["body"], application_properties=message_file["properties"]
            )
            if is_queue:
                sender = self.client.get_queue_sender(queue_name=message_file["entity"])
            else:
                sender = self.client.get_topic_sender(topic_name=message_file["entity"])

            logging.debug(f"Trying to send message to {message_file['entity']}")
            async with sender:
                await sender.send_messages(message)
        except (MessageFileError, ServiceBusError) as e:
            logging.error(f"Failed to seed message from {file}: {e}")
            return False

        logging.info(
            f"Seeded {'queue' if is_queue else 'topic'} '{message_file['entity']}' from {file}"
        )
        return True
