"""
Error taxonomy for the visa proxy.

Every error knows the HTTP status it maps to and renders as the JSON body
``{"error": true, "message": ..., "details": ...}``.
"""

from typing import Any


class VisaProxyError(Exception):
    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": True, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(VisaProxyError):
    """Missing or malformed request parameters."""

    status_code = 400

    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message, details={"fields": fields} if fields else None)
        self.fields = fields or []


class ConfigurationError(VisaProxyError):
    """Deployment problem, e.g. no API key configured."""

    status_code = 500


class ResolutionError(VisaProxyError):
    """An ISO3 code could not be resolved to its ISO2 form."""

    status_code = 400

    def __init__(self, message: str, codes: dict[str, str]):
        super().__init__(message, details={"codes": codes})
        self.codes = codes


class UpstreamTransportError(VisaProxyError):
    """The provider could not be reached or answered with something unusable."""

    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None):
        details = {"upstreamStatus": upstream_status} if upstream_status is not None else None
        super().__init__(message, details=details)
        self.upstream_status = upstream_status
