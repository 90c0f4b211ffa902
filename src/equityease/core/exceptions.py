"""Custom exception hierarchy for equityease."""

from typing import Any


class EquityEaseError(Exception):
    """Base exception for all equityease errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(EquityEaseError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field (str): the config field that failed validation
        value (Any): the invalid value (redacted for secrets)
    """


class ProviderError(EquityEaseError):
    """An upstream market-data provider failed.

    Policy: never crosses the adapter boundary. Adapters catch it, log the
    reason and hand back an empty result so the chain can fall through.

    Context keys:
        provider (str): "tiingo", "yahoo" or "finnhub"
        ticker (str): the symbol being fetched
        status_code (int | None): HTTP status if applicable
    """


class RateLimitError(ProviderError):
    """Provider quota exhausted (HTTP 429 or a quota message in the body).

    Policy: treated like any other provider failure; fall through to the
    next adapter in priority order.

    Context keys:
        retry_after (int | None): seconds the provider asked us to wait
    """


class StorageError(EquityEaseError):
    """Database operation failed.

    Policy: raise immediately. No data can be served without the caches,
    so the whole request fails.

    Context keys:
        operation (str): "insert", "query", "migrate", etc.
        table (str): the table involved
    """


class InvalidRequestError(EquityEaseError):
    """Caller input failed validation.

    Policy: reject before any I/O is attempted (HTTP 400).

    Context keys:
        field (str): the offending request field
        value (Any): the rejected value
    """
