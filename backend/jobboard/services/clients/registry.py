"""
Business registry lookup (NTS business status API)

Status codes returned by the registry:
    01 active, 02 suspended, 03 closed

The lookup never raises: timeouts, missing keys and upstream errors map to
UNAVAILABLE so the caller can fall back to manual review.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum

import httpx

from jobboard.config import get_settings

logger = logging.getLogger(__name__)


class RegistryStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    CLOSED = "CLOSED"
    NOT_FOUND = "NOT_FOUND"
    INVALID = "INVALID"
    UNAVAILABLE = "UNAVAILABLE"


_STATUS_CODES = {
    "01": RegistryStatus.ACTIVE,
    "02": RegistryStatus.SUSPENDED,
    "03": RegistryStatus.CLOSED,
}


@dataclass
class RegistryResult:
    status: RegistryStatus
    raw_status: str = ""

    @property
    def valid(self) -> bool:
        return self.status == RegistryStatus.ACTIVE


def normalize_business_number(business_number: str) -> str:
    return re.sub(r"-", "", business_number or "")


class BusinessRegistryClient:
    def __init__(self, api_key: str | None = None, url: str | None = None, timeout: float | None = None):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.nts_api_key
        self.url = url or settings.nts_api_url
        self.timeout = timeout or settings.registry_timeout_seconds

    async def lookup(self, business_number: str) -> RegistryResult:
        cleaned = normalize_business_number(business_number)
        if not re.fullmatch(r"\d{10}", cleaned):
            return RegistryResult(RegistryStatus.INVALID)

        if not self.api_key:
            return RegistryResult(RegistryStatus.UNAVAILABLE)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    self.url,
                    params={"serviceKey": self.api_key},
                    json={"b_no": [cleaned]},
                )
                response.raise_for_status()
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Business registry lookup failed: {e}")
                return RegistryResult(RegistryStatus.UNAVAILABLE)

        entries = data.get("data") or []
        if not entries:
            return RegistryResult(RegistryStatus.NOT_FOUND)

        code = entries[0].get("b_stt_cd") or ""
        return RegistryResult(_STATUS_CODES.get(code, RegistryStatus.NOT_FOUND), raw_status=entries[0].get("b_stt", ""))
