"""e3db SDK public surface."""

from e3db_sdk.client import Client, Cursor, get_client, get_default_client, register_client
from e3db_sdk.config import get_config, profile_exists, save_config
from e3db_sdk.errors import (
    ConfigError,
    E3DBError,
    ProfileExistsError,
    RecordDecodeError,
    ServiceRequestError,
    ServiceUnavailableError,
)
from e3db_sdk.models import ClientConfig, Meta, Q, Record, RegistrationInfo

__all__ = [
    "E3DBError",
    "ServiceUnavailableError",
    "ServiceRequestError",
    "RecordDecodeError",
    "ConfigError",
    "ProfileExistsError",
    "Client",
    "Cursor",
    "get_client",
    "get_default_client",
    "register_client",
    "get_config",
    "profile_exists",
    "save_config",
    "ClientConfig",
    "Meta",
    "Q",
    "Record",
    "RegistrationInfo",
]
