from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Optional, Tuple

from models.schemas import COUNTRY_CODE_RE, clean_country_code
from store.storage import StateStorage

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "tc.mobi"
MODES = ("visited", "wishlist")
DEFAULT_COUNTRY_TOTAL = 249


def _require_code(code: str) -> str:
    cleaned = clean_country_code(code)
    if not COUNTRY_CODE_RE.match(cleaned):
        raise ValueError(f"Invalid country code: {code!r}")
    return cleaned


def _pct(num: int, denom: int) -> float:
    return round(num / denom * 100, 1) if denom else 0.0


class TravelState:
    """
    The user's passports and visited/wishlist countries.

    Invariants held after every mutation: the primary passport is one of the
    passports (or None), and visited and wishlist never share a code. Every
    mutation is written through to storage immediately.
    """

    def __init__(self, storage: StateStorage, key: str = DEFAULT_STORAGE_KEY):
        self.storage = storage
        self.key = key
        self._mode = "visited"
        self._passports: list[str] = []
        self._primary: Optional[str] = None
        self._visited: set[str] = set()
        self._wishlist: set[str] = set()

    @classmethod
    def open(cls, storage: StateStorage, key: str = DEFAULT_STORAGE_KEY) -> "TravelState":
        state = cls(storage, key)
        state.load()
        return state

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def passports(self) -> Tuple[str, ...]:
        return tuple(self._passports)

    @property
    def primary_passport(self) -> Optional[str]:
        return self._primary

    @property
    def visited(self) -> FrozenSet[str]:
        return frozenset(self._visited)

    @property
    def wishlist(self) -> FrozenSet[str]:
        return frozenset(self._wishlist)

    def set_mode(self, mode: str) -> None:
        if mode not in MODES:
            raise ValueError(f"Unknown mode: {mode!r}")
        self._mode = mode
        self._persist()

    def toggle_country(self, code: str, mode: Optional[str] = None) -> None:
        """
        Flip a country in the given (or current) mode's set. Adding it to one set
        removes it from the other.
        """
        mode = mode or self._mode
        if mode not in MODES:
            raise ValueError(f"Unknown mode: {mode!r}")
        code = _require_code(code)
        target, other = (
            (self._visited, self._wishlist) if mode == "visited" else (self._wishlist, self._visited)
        )
        if code in target:
            target.discard(code)
        else:
            target.add(code)
            other.discard(code)
        self._persist()

    def remove_country(self, code: str) -> None:
        code = _require_code(code)
        self._visited.discard(code)
        self._wishlist.discard(code)
        self._persist()

    def add_passport(self, code: str) -> None:
        code = _require_code(code)
        if code in self._passports:
            return
        self._passports.append(code)
        if self._primary is None:
            self._primary = code
        self._persist()

    def remove_passport(self, code: str) -> None:
        code = _require_code(code)
        if code not in self._passports:
            return
        self._passports.remove(code)
        if self._primary == code:
            self._primary = self._passports[0] if self._passports else None
        self._persist()

    def set_primary_passport(self, code: Optional[str]) -> None:
        if code is None:
            self._primary = None
        else:
            code = _require_code(code)
            if code not in self._passports:
                raise ValueError(f"{code} is not one of the saved passports")
            self._primary = code
        self._persist()

    def coverage(self, total: int = DEFAULT_COUNTRY_TOTAL) -> Dict[str, float]:
        """
        Percentage of all countries marked visited / wishlisted, one decimal.
        """
        return {"visited": _pct(len(self._visited), total), "wishlist": _pct(len(self._wishlist), total)}

    def reset(self) -> None:
        self._mode = "visited"
        self._passports = []
        self._primary = None
        self._visited = set()
        self._wishlist = set()
        self.storage.remove_item(self.key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self._mode,
            "passports": list(self._passports),
            "primaryPassport": self._primary,
            "visited": sorted(self._visited),
            "wishlist": sorted(self._wishlist),
        }

    def load(self) -> None:
        """
        Rehydrate from storage, repairing anything that breaks the invariants.
        """
        data = self.storage.get_item(self.key) or {}
        mode = data.get("mode")
        self._mode = mode if mode in MODES else "visited"

        passports: list[str] = []
        raw_passports = data.get("passports")
        if not isinstance(raw_passports, (list, tuple)):
            raw_passports = []
        for raw in raw_passports:
            code = clean_country_code(raw)
            if COUNTRY_CODE_RE.match(code) and code not in passports:
                passports.append(code)
        self._passports = passports

        primary = clean_country_code(data.get("primaryPassport")) or None
        if primary is not None and primary not in passports:
            logger.warning("Dropping persisted primary passport %s; not a saved passport", primary)
            primary = None
        self._primary = primary

        self._visited = self._load_codes(data.get("visited"))
        self._wishlist = self._load_codes(data.get("wishlist")) - self._visited

    @staticmethod
    def _load_codes(raw: Any) -> set[str]:
        if not isinstance(raw, (list, tuple)):
            return set()
        codes = (clean_country_code(item) for item in raw)
        return {code for code in codes if COUNTRY_CODE_RE.match(code)}

    def _persist(self) -> None:
        self.storage.set_item(self.key, self.to_dict())
