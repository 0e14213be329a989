"""Validation of job submission parameters."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from . import config
from .date_utils import parse_portal_date, span_days
from .districts import resolve_district
from .error_codes import ErrorCode, JobRequestError
from .logging_utils import _scraper_event

REQUIRED_FIELDS = ("fromDate", "toDate", "districtName")


@dataclass(frozen=True)
class JobParams:
    from_date: str
    to_date: str
    district_name: str
    district_code: str

    def as_payload(self) -> dict[str, str]:
        """Return the parameters in the API's camelCase shape."""

        return {
            "fromDate": self.from_date,
            "toDate": self.to_date,
            "districtName": self.district_name,
            "districtCode": self.district_code,
        }


def _reject(error_code: str, message: str) -> JobRequestError:
    _scraper_event("reject", phase="validation", error=error_code, message=message)
    return JobRequestError(error_code, message, http_status=400)


def validate_job_request(payload: Any) -> JobParams:
    """Validate a submission and resolve its district code.

    Raises ``JobRequestError`` with a distinct code for each rejection reason.
    """

    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise _reject(
            ErrorCode.INVALID_PAYLOAD,
            "Request body must be an object with fromDate, toDate and districtName.",
        )
    values = {name: str(payload.get(name) or "").strip() for name in REQUIRED_FIELDS}
    if not all(values.values()):
        raise _reject(
            ErrorCode.MISSING_FIELDS,
            "Required parameters: fromDate, toDate, districtName",
        )

    start = parse_portal_date(values["fromDate"])
    end = parse_portal_date(values["toDate"])
    if start is None or end is None:
        raise _reject(ErrorCode.INVALID_DATE_FORMAT, "Invalid date format. Use DD/MM/YYYY.")

    if start > end:
        raise _reject(ErrorCode.INVALID_DATE_RANGE, "'fromDate' should be before 'toDate'.")

    if span_days(start, end) > config.MAX_DATE_RANGE_DAYS:
        raise _reject(
            ErrorCode.DATE_RANGE_TOO_LONG,
            f"Date range should not exceed {config.MAX_DATE_RANGE_DAYS} days.",
        )

    district = resolve_district(values["districtName"])
    if district is None:
        raise _reject(ErrorCode.UNKNOWN_DISTRICT, "Invalid or unsupported district name.")

    return JobParams(
        from_date=values["fromDate"],
        to_date=values["toDate"],
        district_name=values["districtName"],
        district_code=district[1],
    )


__all__ = ["JobParams", "REQUIRED_FIELDS", "validate_job_request"]
