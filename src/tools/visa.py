import logging
from datetime import datetime, timezone
from typing import Any, Optional

from models.errors import ResolutionError, UpstreamTransportError
from models.schemas import UpstreamResponse, VisaQuery, VisaRequirement, VisaResult
from tools.config import FieldNames, ProxyConfig
from tools.country_codes import to_iso2
from tools.visa_client import fetch_visa_rules

logger = logging.getLogger(__name__)

COLOR_MAP = {
    "red": VisaRequirement.VISA_REQUIRED,
    "green": VisaRequirement.VISA_FREE,
    "blue": VisaRequirement.VISA_ON_ARRIVAL,
    "yellow": VisaRequirement.ETA,
}

# Textual requirement phrases some provider responses carry instead of a color.
PHRASE_MAP = {
    "visa free": VisaRequirement.VISA_FREE,
    "visa-free": VisaRequirement.VISA_FREE,
    "visa on arrival": VisaRequirement.VISA_ON_ARRIVAL,
    "e-visa": VisaRequirement.EVISA,
    "evisa": VisaRequirement.EVISA,
    "eta": VisaRequirement.ETA,
    "visa required": VisaRequirement.VISA_REQUIRED,
}

STAY_FIELDS = ("stay_of", "duration", "stay")
NOTES_FIELDS = ("except_text", "notes", "message")
SOURCE_FIELDS = ("source", "official_url", "link")
RULE_FIELDS = ("color", "requirement", "status") + STAY_FIELDS + ("except_text", "notes")

REQUIREMENT_LABELS = {
    VisaRequirement.VISA_FREE: "Visa-free",
    VisaRequirement.EVISA: "eVisa",
    VisaRequirement.ETA: "eTA",
    VisaRequirement.VISA_ON_ARRIVAL: "Visa on arrival",
    VisaRequirement.VISA_REQUIRED: "Visa required",
    VisaRequirement.UNKNOWN: "Unknown",
}

REQUIREMENT_TONES = {
    VisaRequirement.VISA_FREE: "#16a34a",
    VisaRequirement.EVISA: "#d97706",
    VisaRequirement.ETA: "#d97706",
    VisaRequirement.VISA_ON_ARRIVAL: "#d97706",
    VisaRequirement.VISA_REQUIRED: "#dc2626",
    VisaRequirement.UNKNOWN: "#6b7280",
}


def requirement_label(requirement: VisaRequirement) -> str:
    return REQUIREMENT_LABELS[VisaRequirement(requirement)]


def requirement_tone(requirement: VisaRequirement) -> str:
    return REQUIREMENT_TONES[VisaRequirement(requirement)]


def _first_text(payload: dict[str, Any], keys: tuple[str, ...]) -> Optional[str]:
    for key in keys:
        value = payload.get(key)
        if value is None or isinstance(value, (dict, list)):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _map_requirement(payload: dict[str, Any]) -> VisaRequirement:
    color = _first_text(payload, ("color",))
    if color is not None:
        return COLOR_MAP.get(color.lower(), VisaRequirement.UNKNOWN)
    phrase = _first_text(payload, ("requirement", "status"))
    if phrase is not None:
        return PHRASE_MAP.get(phrase.lower(), VisaRequirement.UNKNOWN)
    return VisaRequirement.UNKNOWN


def normalize_visa_response(
    payload: Any,
    passport: str,
    destination: str,
    now: Optional[datetime] = None,
) -> VisaResult:
    """
    Map the provider's ad hoc fields onto VisaResult. Missing or malformed
    fields degrade to None/unknown; this never raises on bad payloads.
    """
    fetched_at = now or datetime.now(timezone.utc)
    if not isinstance(payload, dict):
        return VisaResult(passport=passport, destination=destination, fetched_at=fetched_at)
    return VisaResult(
        passport=passport,
        destination=destination,
        requirement=_map_requirement(payload),
        allowed_stay=_first_text(payload, STAY_FIELDS),
        notes=_first_text(payload, NOTES_FIELDS),
        source=_first_text(payload, SOURCE_FIELDS),
        fetched_at=fetched_at,
    )


def signals_no_data(resp: UpstreamResponse) -> bool:
    """
    True when the provider answered but has no rule for the pair.
    """
    if resp.status_code == 404:
        return True
    if not resp.ok or resp.payload is None:
        return False
    return _first_text(resp.payload, RULE_FIELDS) is None


def _ensure_usable(resp: UpstreamResponse) -> None:
    if resp.status_code == 404:
        return
    if not resp.ok:
        raise UpstreamTransportError(
            f"Upstream call failed: provider returned HTTP {resp.status_code}",
            upstream_status=resp.status_code,
        )
    if resp.payload is None:
        reason = "an unexpected JSON shape" if resp.is_json else "a non-JSON response"
        raise UpstreamTransportError(
            f"Upstream call failed: provider returned {reason}",
            upstream_status=resp.status_code,
        )


async def resolve_query(query: VisaQuery, config: ProxyConfig) -> tuple[str, str]:
    passport = await to_iso2(query.passport, config.country_lookup_url)
    destination = await to_iso2(query.destination, config.country_lookup_url)
    failed = {}
    if not passport:
        failed["passport"] = query.passport
    if not destination:
        failed["destination"] = query.destination
    if failed:
        attempted = ", ".join(f"{name}={code}" for name, code in failed.items())
        raise ResolutionError(f"Could not resolve country code(s): {attempted}", codes=failed)
    return passport, destination


async def _call_provider(
    passport: str, destination: str, config: ProxyConfig, names: Optional[FieldNames] = None
) -> UpstreamResponse:
    resp = await fetch_visa_rules(passport, destination, config, names)
    _ensure_usable(resp)
    return resp


async def check_visa_with_diagnostics(
    query: VisaQuery, config: ProxyConfig
) -> tuple[VisaResult, UpstreamResponse]:
    """
    Resolve, call the provider and normalize, returning the last upstream
    response alongside the result.
    """
    passport, destination = await resolve_query(query, config)
    resp = await _call_provider(passport, destination, config)
    if signals_no_data(resp) and config.alias_field_names:
        logger.info(
            "No data for %s -> %s with canonical fields; retrying with %s/%s",
            passport,
            destination,
            config.alias_field_names.passport,
            config.alias_field_names.destination,
        )
        try:
            resp = await _call_provider(passport, destination, config, config.alias_field_names)
        except UpstreamTransportError as exc:
            # Keep the canonical answer.
            logger.warning("Alias retry failed for %s -> %s: %s", passport, destination, exc.message)

    if signals_no_data(resp):
        result = VisaResult(
            passport=query.passport,
            destination=query.destination,
            requirement=VisaRequirement.UNKNOWN,
            notes=f"The provider has no visa rule for {query.passport} -> {query.destination}.",
            fetched_at=datetime.now(timezone.utc),
        )
        return result, resp

    return normalize_visa_response(resp.payload, query.passport, query.destination), resp


async def check_visa_requirements(query: VisaQuery, config: ProxyConfig) -> VisaResult:
    """
    Visa requirement lookup against the live provider.
    """
    result, _ = await check_visa_with_diagnostics(query, config)
    return result
