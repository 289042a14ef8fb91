import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

COUNTRY_CODE_RE = re.compile(r"^[A-Z]{2,3}$")


def clean_country_code(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().upper()


class VisaRequirement(str, Enum):
    VISA_FREE = "visa_free"
    EVISA = "evisa"
    ETA = "eta"
    VISA_ON_ARRIVAL = "visa_on_arrival"
    VISA_REQUIRED = "visa_required"
    UNKNOWN = "unknown"


class VisaQuery(BaseModel):
    passport: str
    destination: str

    @field_validator("passport", "destination", mode="before")
    @classmethod
    def _normalize_code(cls, value: Any) -> str:
        code = clean_country_code(value)
        if not COUNTRY_CODE_RE.match(code):
            raise ValueError("must be a 2- or 3-letter country code")
        return code


class VisaResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    passport: str
    destination: str
    requirement: VisaRequirement = VisaRequirement.UNKNOWN
    allowed_stay: str | None = None
    notes: str | None = None
    source: str | None = None
    fetched_at: datetime

    def to_public(self) -> dict[str, Any]:
        """
        Client-facing JSON shape: camelCase keys, absent optionals omitted.
        """
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class UpstreamResponse(BaseModel):
    status_code: int
    ok: bool
    text: str = ""
    payload: dict[str, Any] | None = None
    is_json: bool = False
    sent: dict[str, Any] = Field(default_factory=dict)

