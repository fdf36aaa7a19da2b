"""
Addon Errors
Exception taxonomy shared by the runtime and addon handlers
"""


class AddonError(Exception):
    """Base class for all addon runtime errors"""


class InvalidManifestError(AddonError):
    """The manifest template failed startup validation"""


class ConfigurationDecodeError(AddonError):
    """The configuration segment of a request path could not be decoded"""


class MalformedConfigurationError(ConfigurationDecodeError):
    """The segment is not valid (base64 encoded) JSON"""


class ConfigurationSchemaError(ConfigurationDecodeError):
    """The segment is valid JSON but does not match the registered schema"""


class UnexpectedConfigurationError(ConfigurationDecodeError):
    """A configuration segment was sent to an addon without a registered schema"""


class HandlerNotImplemented(AddonError):
    """No handler is registered for a (resource, type) pair"""

    def __init__(self, resource: str, item_type: str):
        super().__init__(f"No {resource} handler registered for type '{item_type}'")
        self.resource = resource
        self.item_type = item_type


class NotFound(AddonError):
    """Raised by a handler when it has no result for the requested id"""
