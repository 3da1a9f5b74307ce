"""Exceptions raised for infrastructure failures.

Business-rule failures (unknown service, no quote, insufficient balance...)
are not raised; workflows return them as a failed ``Outcome`` instead.
"""


class DataMarketError(Exception):
    """Base class for all errors raised by the orchestrator."""


class ValidationError(DataMarketError):
    """Malformed input, e.g. a string that is not an address."""


class SigningError(DataMarketError):
    """The signing collaborator could not produce or verify a signature."""


class LedgerTransactionError(DataMarketError):
    """A ledger write failed or returned no transaction identifier."""


class TransportError(DataMarketError):
    """Provider or metadata index I/O failed."""


class MissingEndpointError(DataMarketError):
    """The access service of an asset declares no ``serviceEndpoint``."""
