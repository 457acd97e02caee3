"""
Client construction for Cosmos DB and Service Bus.
"""

import logging
from typing import Dict, Tuple
from urllib.parse import urlparse

from azure.cosmos.aio import CosmosClient
from azure.identity import DefaultAzureCredential
from azure.identity.aio import \
    DefaultAzureCredential as AsyncDefaultAzureCredential
from azure.keyvault.secrets import SecretClient
from azure.servicebus.aio import ServiceBusClient

from dataseeder.config import (EMULATOR_ENDPOINT, EMULATOR_KEY,
                               parse_connection_string)
from dataseeder.cosmos_gateway import CosmosGateway


LOCAL_HOSTS = ("localhost", "127.0.0.1")


def get_secret(key_vault_name: str, secretname: str) -> str:
    """
    Retrieve a secret from Azure Key Vault.

    Args:
        key_vault_name: Name of the Key Vault (without .vault.azure.net suffix)
        secretname: Name of the secret to retrieve

    Returns:
        The secret value as a string
    """
    try:
        kv_uri = f"https://{key_vault_name}.vault.azure.net"
        credential = DefaultAzureCredential()
        client = SecretClient(vault_url=kv_uri, credential=credential)
        secret = client.get_secret(secretname)
        return secret.value
    except Exception as e:
        logging.error(f"Failed to retrieve secret '{secretname}' from Key Vault '{key_vault_name}': {str(e)}")
        raise


def is_emulator_endpoint(endpoint: str) -> bool:
    """Detect the local emulator from the endpoint host."""
    return urlparse(endpoint).hostname in LOCAL_HOSTS


def resolve_cosmos_credentials(params: Dict) -> Tuple[str, object]:
    """
    Pick the endpoint and credential for a run.

    Priority: connection string, Key Vault secret, managed identity, then the
    local emulator's well-known key.

    Returns:
        Tuple of (endpoint, credential) where credential is a master key or a
        token credential
    """
    if params["connection_string"]:
        settings = parse_connection_string(params["connection_string"])
        return settings["AccountEndpoint"], settings["AccountKey"]

    endpoint = params["cosmos_url"] or EMULATOR_ENDPOINT

    if params["key_vault_name"]:
        logging.info(f"Reading Cosmos DB key from Key Vault '{params['key_vault_name']}'")
        return endpoint, get_secret(params["key_vault_name"], params["cosmos_secret_name"])

    if params["use_managed_identity"]:
        logging.info(f"Authenticating to {endpoint} with managed identity")
        return endpoint, AsyncDefaultAzureCredential()

    return endpoint, EMULATOR_KEY


def create_cosmos_gateway(params: Dict) -> CosmosGateway:
    endpoint, credential = resolve_cosmos_credentials(params)
    emulator = is_emulator_endpoint(endpoint)
    if emulator:
        logging.info(f"Using local emulator at {endpoint} (TLS verification disabled)")
    client = CosmosClient(endpoint, credential=credential, connection_verify=not emulator)
    token_credential = None if isinstance(credential, str) else credential
    return CosmosGateway(client, credential=token_credential)


def create_servicebus_client(params: Dict) -> ServiceBusClient:
    return ServiceBusClient.from_connection_string(params["servicebus_connection_string"])
