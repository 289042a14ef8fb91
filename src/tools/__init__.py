from .country_codes import to_iso2
from .visa_client import fetch_visa_rules
from .visa import check_visa_requirements, normalize_visa_response

__all__ = [
    "to_iso2",
    "fetch_visa_rules",
    "check_visa_requirements",
    "normalize_visa_response",
]
