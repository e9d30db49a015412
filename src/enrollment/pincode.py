"""
Enrollment - Pincode lookup.

PincodeLookupService backed by the India Post pincode API:
GET {base}/{pincode} -> [{"Status": "Success", "PostOffice": [{"District", "State", ...}]}]
"""

import logging

import httpx

from enrollment.errors import PincodeLookupError
from onboarding.services import PincodeDetails

logger = logging.getLogger(__name__)

DEFAULT_PINCODE_API = "https://api.postalpincode.in/pincode"


class PostalPincodeClient:
    """Resolves a pincode to (district, state). Every failure is a PincodeLookupError."""

    def __init__(
        self,
        base_url: str = DEFAULT_PINCODE_API,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, enrollment_settings=None) -> "PostalPincodeClient":
        if enrollment_settings is None:
            from enrollment.config import settings as enrollment_settings
        return cls(
            base_url=enrollment_settings.pincode_api_url,
            timeout=enrollment_settings.pincode_timeout_seconds,
        )

    async def lookup(self, pincode: str) -> PincodeDetails:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(f"{self.base_url}/{pincode}")
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching pincode details for {pincode}: {e}")
            raise PincodeLookupError(pincode, "Pincode lookup failed") from e

        return _parse_details(pincode, data)


def _parse_details(pincode: str, data) -> PincodeDetails:
    """First post office of a successful response; any other shape is a lookup failure."""
    result = data[0] if isinstance(data, list) and data else None
    if not isinstance(result, dict) or result.get("Status") != "Success":
        raise PincodeLookupError(pincode)

    post_offices = result.get("PostOffice")
    if not isinstance(post_offices, list) or not post_offices or not isinstance(post_offices[0], dict):
        logger.warning(f"Unexpected PostOffice payload for {pincode}: {post_offices!r}")
        raise PincodeLookupError(pincode)

    first = post_offices[0]
    return PincodeDetails(city=str(first.get("District") or ""), state=str(first.get("State") or ""))
