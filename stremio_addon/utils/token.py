"""
User Data Codec
Handles encoding/decoding of addon configuration in URL path segments
"""
import base64
import binascii
import json
import re
from typing import Any, Generic, Optional, Type, TypeVar
from urllib.parse import quote
from pydantic import TypeAdapter, ValidationError
from stremio_addon.core.errors import (
    ConfigurationSchemaError,
    MalformedConfigurationError,
    UnexpectedConfigurationError,
)

ConfigT = TypeVar("ConfigT")

URLSAFE_BASE64 = re.compile(r"[A-Za-z0-9_-]*={0,2}")


class UserDataCodec(Generic[ConfigT]):
    """
    Codec bound to the single configuration schema of an addon.

    The schema can be anything pydantic validates: a BaseModel, a dataclass,
    a TypedDict or a plain ``Dict[str, Any]``.
    """

    def __init__(self, schema: Type[ConfigT], base64_encoded: bool = False):
        self.schema = schema
        self.base64_encoded = base64_encoded
        self._adapter: TypeAdapter = TypeAdapter(schema)

    def encode(self, config: ConfigT) -> str:
        """
        Encode a configuration value into a path segment

        Args:
            config: Configuration value of the registered schema

        Returns:
            JSON text, or its URL-safe base64 form
        """
        config_json = self._adapter.dump_json(config, by_alias=True).decode("utf-8")
        if not self.base64_encoded:
            return config_json
        return base64.urlsafe_b64encode(config_json.encode("utf-8")).decode("utf-8")

    def decode(self, segment: str) -> ConfigT:
        """
        Decode and validate a path segment

        Args:
            segment: Path segment, already percent-decoded

        Returns:
            Configuration value of the registered schema

        Raises:
            MalformedConfigurationError: segment is not (base64 encoded) JSON
            ConfigurationSchemaError: JSON does not match the schema
        """
        config_json = segment
        if self.base64_encoded:
            config_json = self._b64decode(segment)

        try:
            data: Any = json.loads(config_json)
        except ValueError as e:
            raise MalformedConfigurationError(f"User data is not valid JSON: {e}") from e

        try:
            return self._adapter.validate_python(data)
        except ValidationError as e:
            raise ConfigurationSchemaError(
                f"User data does not match {getattr(self.schema, '__name__', self.schema)}: "
                f"{e.error_count()} error(s)"
            ) from e

    @staticmethod
    def _b64decode(segment: str) -> str:
        if not URLSAFE_BASE64.fullmatch(segment):
            raise MalformedConfigurationError("User data is not URL-safe base64")
        # Clients commonly strip the padding
        padded = segment + "=" * (-len(segment) % 4)
        try:
            raw = base64.urlsafe_b64decode(padded)
            return raw.decode("utf-8")
        except (binascii.Error, UnicodeError, ValueError) as e:
            raise MalformedConfigurationError(f"User data is not valid base64: {e}") from e


def install_url(base_url: str, segment: str) -> str:
    """
    Build the URL a user installs the addon from

    Args:
        base_url: Public URL of the addon
        segment: Encoded configuration segment

    Returns:
        "<base_url>/<segment>/manifest.json" with the segment percent-encoded
    """
    return f"{base_url.rstrip('/')}/{quote(segment, safe='=-_')}/manifest.json"


def decode_user_data(codec: Optional[UserDataCodec], segment: Optional[str]) -> Optional[Any]:
    """
    Decode the configuration segment of a request path

    Args:
        codec: Codec of the addon's registered schema, None if it has none
        segment: Configuration segment, None on unconfigured paths

    Returns:
        Decoded configuration, or None when the path carries no segment
    """
    if segment is None:
        return None
    if codec is None:
        raise UnexpectedConfigurationError("This addon doesn't accept user data")
    return codec.decode(segment)
