import logging
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from models.errors import UpstreamTransportError
from models.schemas import UpstreamResponse
from tools.config import FieldNames, ProxyConfig

logger = logging.getLogger(__name__)

REDACTED = "<redacted>"


def _form_fields(passport: str, destination: str, names: FieldNames) -> dict[str, str]:
    return {names.passport: passport, names.destination: destination}


def describe_request(
    passport: str,
    destination: str,
    config: ProxyConfig,
    field_names: Optional[FieldNames] = None,
) -> dict[str, Any]:
    """
    The outbound request as it would be sent, with the API key redacted.
    """
    fields = _form_fields(passport, destination, field_names or config.field_names)
    headers = config.build_headers()
    for name in config.key_headers:
        headers[name] = REDACTED
    sent: dict[str, Any] = {
        "url": config.upstream_url,
        "method": config.method,
        "headers": headers,
    }
    if config.method == "GET":
        sent["query"] = urlencode(fields)
    else:
        sent["body"] = urlencode(fields)
    return sent


def _decode_payload(resp: Any) -> tuple[Optional[dict[str, Any]], bool]:
    """
    Decoded JSON object (None for any other shape) and whether the body was JSON at all.
    """
    try:
        data = resp.json()
    except ValueError:
        return None, False
    return (data if isinstance(data, dict) else None), True


async def fetch_visa_rules(
    passport: str,
    destination: str,
    config: ProxyConfig,
    field_names: Optional[FieldNames] = None,
) -> UpstreamResponse:
    """
    Make one authenticated call to the visa provider with ISO2 codes.

    Non-2xx and non-JSON answers come back as an UpstreamResponse for the caller
    to judge; only a transport failure raises UpstreamTransportError.
    """
    names = field_names or config.field_names
    fields = _form_fields(passport, destination, names)
    headers = config.build_headers()
    client_kwargs: dict[str, Any] = {}
    if config.timeout is not None:
        client_kwargs["timeout"] = config.timeout
    try:
        async with httpx.AsyncClient(**client_kwargs) as client:
            if config.method == "GET":
                resp = await client.get(config.upstream_url, params=fields, headers=headers)
            else:
                resp = await client.post(config.upstream_url, data=fields, headers=headers)
    except httpx.HTTPError as exc:
        logger.warning("Visa provider call failed for %s -> %s: %s", passport, destination, exc)
        raise UpstreamTransportError(f"Upstream call failed: {exc}") from exc

    status = resp.status_code
    payload, is_json = _decode_payload(resp)
    return UpstreamResponse(
        status_code=status,
        ok=200 <= status < 300,
        text=resp.text or "",
        payload=payload,
        is_json=is_json,
        sent=describe_request(passport, destination, config, names),
    )
