import logging
from typing import Optional

import httpx

from models.schemas import COUNTRY_CODE_RE, clean_country_code

logger = logging.getLogger(__name__)

COUNTRY_LOOKUP_URL = "https://restcountries.com/v3.1/alpha"

# Common ISO3 -> ISO2 codes; anything else goes through the remote lookup.
ISO3_TO_ISO2 = {
    "ARE": "AE",
    "ARG": "AR",
    "AUS": "AU",
    "AUT": "AT",
    "BEL": "BE",
    "BRA": "BR",
    "CAN": "CA",
    "CHE": "CH",
    "CHL": "CL",
    "CHN": "CN",
    "COL": "CO",
    "CZE": "CZ",
    "DEU": "DE",
    "DNK": "DK",
    "EGY": "EG",
    "ESP": "ES",
    "FIN": "FI",
    "FRA": "FR",
    "GBR": "GB",
    "GEO": "GE",
    "GRC": "GR",
    "HKG": "HK",
    "HUN": "HU",
    "IDN": "ID",
    "IND": "IN",
    "IRL": "IE",
    "ISR": "IL",
    "ITA": "IT",
    "JPN": "JP",
    "KAZ": "KZ",
    "KGZ": "KG",
    "KOR": "KR",
    "MAR": "MA",
    "MEX": "MX",
    "MYS": "MY",
    "NLD": "NL",
    "NOR": "NO",
    "NZL": "NZ",
    "PER": "PE",
    "PHL": "PH",
    "POL": "PL",
    "PRT": "PT",
    "QAT": "QA",
    "ROU": "RO",
    "RUS": "RU",
    "SAU": "SA",
    "SGP": "SG",
    "SWE": "SE",
    "THA": "TH",
    "TJK": "TJ",
    "TUR": "TR",
    "UKR": "UA",
    "USA": "US",
    "UZB": "UZ",
    "VNM": "VN",
    "ZAF": "ZA",
}


def is_country_code(value: object) -> bool:
    return bool(COUNTRY_CODE_RE.match(clean_country_code(value)))


def _pick_iso2(data: object, iso3: str) -> Optional[str]:
    records = data if isinstance(data, list) else [data]
    for record in records:
        if not isinstance(record, dict):
            continue
        if str(record.get("cca3") or "").upper() != iso3:
            continue
        cca2 = str(record.get("cca2") or "").upper()
        if len(cca2) == 2 and cca2.isalpha():
            return cca2
    return None


async def lookup_iso2(iso3: str, base_url: str = COUNTRY_LOOKUP_URL) -> Optional[str]:
    """
    Ask the public country-reference service for the ISO2 form of an ISO3 code.
    Returns None when the service is unreachable or has no matching record.
    """
    url = f"{base_url.rstrip('/')}/{iso3}"
    params = {"fields": "cca2,cca3"}
    try:
        async with httpx.AsyncClient(timeout=8) as client:
            resp = await client.get(url, params=params)
            resp.raise_for_status()
        data = resp.json()
    except Exception as exc:
        logger.warning("Country lookup failed for %s: %s", iso3, exc)
        return None
    iso2 = _pick_iso2(data, iso3)
    if not iso2:
        logger.warning("Country lookup returned no ISO2 match for %s", iso3)
    return iso2


async def to_iso2(code: str, base_url: str = COUNTRY_LOOKUP_URL) -> Optional[str]:
    """
    Convert a country code to the 2-letter form the visa provider expects.
    2-letter codes pass through, known 3-letter codes come from ISO3_TO_ISO2,
    and the rest are resolved remotely. None means "unresolvable".
    """
    code = clean_country_code(code)
    if not COUNTRY_CODE_RE.match(code):
        return None
    if len(code) == 2:
        return code
    if code in ISO3_TO_ISO2:
        return ISO3_TO_ISO2[code]
    return await lookup_iso2(code, base_url)
