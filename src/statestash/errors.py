"""statestash exception hierarchy.

Structural errors (conflicts, use-after-unregister, bad schemas) are raised
synchronously from the call that triggered them. DeserializationError is the
one data-quality error: codecs raise it, the store always absorbs it.
"""


class StateStashError(Exception):
    """Base exception for all statestash errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class SchemaError(StateStashError):
    """Schema configuration is invalid."""

    pass


class RegistrationConflict(StateStashError):
    """A new provider's prefixed keys overlap an existing provider's."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            f"Provider already registered using the same name: {key}",
            details={"key": key},
        )


class UnregisteredProviderError(StateStashError):
    """An update was pushed for a provider that is no longer registered."""

    def __init__(self, provider_id: int):
        self.provider_id = provider_id
        super().__init__(
            "Unregistered provider attempting to update state",
            details={"provider_id": provider_id},
        )


class DeserializationError(StateStashError):
    """A serialized value could not be decoded."""

    def __init__(self, text: str, reason: str = ""):
        self.text = text
        message = f"Cannot deserialize {text!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, details={"text": text})
