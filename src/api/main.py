# src/api/main.py
import json
from datetime import datetime, timezone
from typing import Any, Mapping
from uuid import uuid4

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.logger import configure_event_log, log_event
from models.errors import ConfigurationError, ValidationError, VisaProxyError
from models.schemas import VisaQuery, clean_country_code
from tools.config import ProxyConfig, load_proxy_config
from tools.country_codes import is_country_code
from tools.visa import check_visa_with_diagnostics, resolve_query
from tools.visa_client import describe_request

load_dotenv()
configure_event_log()

CORS_ALLOW_METHODS = ["GET", "POST", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Content-Type", "x-rapidapi-key", "x-api-key", "x-rapidapi-host"]
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": ",".join(CORS_ALLOW_METHODS),
    "Access-Control-Allow-Headers": ",".join(CORS_ALLOW_HEADERS),
}


app = FastAPI(title="Travel Companion Visa Proxy")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=CORS_ALLOW_METHODS,
    allow_headers=CORS_ALLOW_HEADERS,
)


def get_proxy_config() -> ProxyConfig:
    return load_proxy_config()


@app.exception_handler(VisaProxyError)
async def visa_proxy_error_handler(request: Request, exc: VisaProxyError) -> JSONResponse:
    return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=CORS_HEADERS)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_api_key(config: ProxyConfig) -> None:
    if not config.api_key:
        raise ConfigurationError("Missing VISA_API_KEY env")


def _validate_params(params: Mapping[str, Any]) -> VisaQuery:
    # `nationality` is accepted as an alias for `passport`.
    values = {
        "passport": clean_country_code(params.get("passport") or params.get("nationality")),
        "destination": clean_country_code(params.get("destination")),
    }
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ValidationError(f"Missing required parameter(s): {', '.join(missing)}", fields=missing)
    invalid = [name for name, value in values.items() if not is_country_code(value)]
    if invalid:
        raise ValidationError(
            f"Invalid country code for: {', '.join(invalid)} (use ISO2 like FR or ISO3 like FRA)",
            fields=invalid,
        )
    return VisaQuery(**values)


async def _read_json_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise ValidationError("Request body must be a JSON object") from exc
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


async def _echo(query: VisaQuery, config: ProxyConfig) -> JSONResponse:
    passport, destination = await resolve_query(query, config)
    body = {
        "ok": True,
        "note": "Echo only (no upstream call made). Remove echo=1 to call the provider.",
        "sent": describe_request(passport, destination, config),
        "at": _now_iso(),
    }
    return JSONResponse(body, headers=CORS_HEADERS)


async def _lookup(query: VisaQuery, config: ProxyConfig, debug: bool = False) -> JSONResponse:
    request_id = uuid4().hex
    log_event(request_id, "visa_lookup", {"passport": query.passport, "destination": query.destination})
    try:
        result, upstream = await check_visa_with_diagnostics(query, config)
    except VisaProxyError as exc:
        log_event(request_id, "visa_lookup_failed", {"status": exc.status_code, "message": exc.message})
        raise
    log_event(request_id, "visa_lookup_done", {"requirement": result.requirement.value})

    body: dict[str, Any] = result.to_public()
    if debug:
        body = {
            "result": body,
            "upstream": {
                "status": upstream.status_code,
                "ok": upstream.ok,
                "sent": upstream.sent,
                "received": upstream.payload if upstream.payload is not None else upstream.text,
            },
        }
    return JSONResponse(body, headers=CORS_HEADERS)


@app.options("/visa")
async def visa_preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@app.get("/visa")
async def visa_get(request: Request, config: ProxyConfig = Depends(get_proxy_config)) -> JSONResponse:
    _require_api_key(config)
    params = request.query_params
    query = _validate_params(params)
    if config.diagnostics_enabled and params.get("echo") == "1":
        return await _echo(query, config)
    debug = config.diagnostics_enabled and params.get("debug") == "1"
    return await _lookup(query, config, debug=debug)


@app.post("/visa")
async def visa_post(request: Request, config: ProxyConfig = Depends(get_proxy_config)) -> JSONResponse:
    _require_api_key(config)
    body = await _read_json_body(request)
    query = _validate_params(body)
    return await _lookup(query, config)


@app.get("/ping")
async def ping(request: Request, config: ProxyConfig = Depends(get_proxy_config)) -> dict:
    return {
        "ok": True,
        "time": _now_iso(),
        "env": {"VISA_API_KEY": bool(config.api_key)},
        "query": dict(request.query_params),
    }
