import pytest

from app.scraper import config
from app.scraper.date_utils import filename_date, parse_portal_date
from app.scraper.districts import ALLOWED_DISTRICTS, district_code, resolve_district
from app.scraper.error_codes import ErrorCode, JobRequestError
from app.scraper.validation import validate_job_request


def _payload(**overrides):
    payload = {"fromDate": "01/01/2024", "toDate": "15/01/2024", "districtName": "PUNE CITY"}
    payload.update(overrides)
    return payload


def test_valid_request_resolves_district_code() -> None:
    params = validate_job_request(_payload())

    assert params.district_code == "19393"
    assert params.as_payload() == {
        "fromDate": "01/01/2024",
        "toDate": "15/01/2024",
        "districtName": "PUNE CITY",
        "districtCode": "19393",
    }


def test_range_over_ninety_days_is_rejected() -> None:
    with pytest.raises(JobRequestError) as excinfo:
        validate_job_request(_payload(toDate="01/04/2024"))

    assert excinfo.value.error_code == ErrorCode.DATE_RANGE_TOO_LONG
    assert excinfo.value.http_status == 400


def test_exactly_ninety_days_is_accepted() -> None:
    # 2024 is a leap year: 01/01 -> 31/03 spans 90 days.
    params = validate_job_request(_payload(toDate="31/03/2024"))

    assert params.to_date == "31/03/2024"


@pytest.mark.parametrize(
    "overrides, code",
    [
        ({"fromDate": ""}, ErrorCode.MISSING_FIELDS),
        ({"districtName": None}, ErrorCode.MISSING_FIELDS),
        ({"fromDate": "2024-01-01"}, ErrorCode.INVALID_DATE_FORMAT),
        ({"toDate": "1/2/2024"}, ErrorCode.INVALID_DATE_FORMAT),
        ({"toDate": "31/02/2024"}, ErrorCode.INVALID_DATE_FORMAT),
        ({"fromDate": "20/01/2024"}, ErrorCode.INVALID_DATE_RANGE),
        ({"districtName": "ATLANTIS"}, ErrorCode.UNKNOWN_DISTRICT),
    ],
)
def test_rejections_have_distinct_codes(overrides, code) -> None:
    with pytest.raises(JobRequestError) as excinfo:
        validate_job_request(_payload(**overrides))

    assert excinfo.value.error_code == code


def test_missing_payload_is_rejected() -> None:
    with pytest.raises(JobRequestError) as excinfo:
        validate_job_request(None)

    assert excinfo.value.error_code == ErrorCode.MISSING_FIELDS


@pytest.mark.parametrize("payload", [[{"fromDate": "01/01/2024"}], "01/01/2024", 5])
def test_non_object_payload_is_rejected(payload) -> None:
    with pytest.raises(JobRequestError) as excinfo:
        validate_job_request(payload)

    assert excinfo.value.error_code == ErrorCode.INVALID_PAYLOAD
    assert excinfo.value.http_status == 400


def test_range_cap_follows_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MAX_DATE_RANGE_DAYS", 10)

    with pytest.raises(JobRequestError):
        validate_job_request(_payload())


def test_district_lookup_is_case_insensitive() -> None:
    assert district_code("pune city") == "19393"
    assert district_code("  Pune City ") == "19393"
    assert resolve_district("mira-bhayandar, vasai-virar police commissioner") == (
        "Mira-Bhayandar, Vasai-Virar Police Commissioner",
        "19411",
    )
    assert district_code("MIRA-BHAYANDAR, VASAI-VIRAR POLICE COMMISSIONER") == "19411"
    assert district_code("") is None


def test_district_directory_is_read_only() -> None:
    with pytest.raises(TypeError):
        ALLOWED_DISTRICTS["NEW"] = "1"  # type: ignore[index]


def test_date_helpers() -> None:
    assert parse_portal_date("05/06/2024").isoformat() == "2024-06-05"
    assert parse_portal_date("5/6/2024") is None
    assert parse_portal_date(None) is None
    assert filename_date("05/06/2024") == "05-06-2024"
