# invoice_scan/errors.py
"""Exception types raised at the service and component boundaries."""


class InvoiceScanError(Exception):
    """Base class for every error this package raises on purpose."""


class ServiceNotConfigured(InvoiceScanError):
    """An external collaborator (OCR, LLM, identity) has no credentials."""


class UpstreamError(InvoiceScanError):
    """An external service call failed or returned nothing usable."""


class JsonParseError(InvoiceScanError):
    """Model output could not be parsed as JSON, even after repair."""


class ExtractionError(InvoiceScanError):
    """A direct extraction endpoint could not produce a result."""


class AuthError(InvoiceScanError):
    """Missing, malformed or rejected bearer token."""
