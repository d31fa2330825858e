"""Tests for listing query parameter parsing."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest

from src.herdbook.core.errors import ValidationError
from src.herdbook.queries.params import (
    ListParams,
    parse_bool,
    parse_choices,
    parse_datetime,
    parse_float,
    parse_paging,
    parse_sort,
    parse_uuid,
    split_csv,
)


def test_split_csv_trims_and_drops_blanks_and_duplicates():
    assert split_csv(" cattle, goat,,cattle ,") == ["cattle", "goat"]


def test_paging_defaults():
    assert parse_paging({}, default_limit=20, max_limit=100) == (1, 20)


@pytest.mark.parametrize(
    "query, field",
    [
        ({"page": "0"}, "page"),
        ({"page": "abc"}, "page"),
        ({"limit": "0"}, "limit"),
        ({"limit": "101"}, "limit"),
    ],
)
def test_paging_rejects_out_of_range(query, field):
    with pytest.raises(ValidationError) as exc_info:
        parse_paging(query, default_limit=20, max_limit=100)
    assert field in exc_info.value.fields


def test_limit_at_maximum_is_accepted():
    assert parse_paging({"page": "3", "limit": "100"}, default_limit=20, max_limit=100) == (3, 100)


def test_sort_unknown_key_names_sort_by():
    with pytest.raises(ValidationError) as exc_info:
        parse_sort({"sortBy": "password"}, ["name", "tag"], "name")
    assert list(exc_info.value.fields) == ["sortBy"]
    assert exc_info.value.status_code == 400


def test_sort_defaults_and_order():
    assert parse_sort({}, ["name", "created_at"], "created_at") == ("created_at", "desc")
    assert parse_sort({"sortBy": "name", "sortOrder": "ASC"}, ["name"], "name") == ("name", "asc")


def test_sort_order_must_be_asc_or_desc():
    with pytest.raises(ValidationError) as exc_info:
        parse_sort({"sortOrder": "sideways"}, ["name"], "name")
    assert "sortOrder" in exc_info.value.fields


def test_parse_choices_rejects_unknown_value():
    with pytest.raises(ValidationError) as exc_info:
        parse_choices("status", "active,broken", choices=("active", "offline"))
    assert "broken" in exc_info.value.fields["status"]


def test_parse_choices_coerces_uuids():
    first, second = uuid.uuid4(), uuid.uuid4()
    assert parse_choices("deviceId", f"{first},{second}", coerce=parse_uuid) == [first, second]


def test_parse_choices_bad_uuid_names_field():
    with pytest.raises(ValidationError) as exc_info:
        parse_choices("deviceId", "not-a-uuid", coerce=parse_uuid)
    assert "deviceId" in exc_info.value.fields


def test_parse_float_rejects_text_and_nan():
    with pytest.raises(ValidationError):
        parse_float("weightMin", "heavy")
    with pytest.raises(ValidationError):
        parse_float("weightMin", "nan")
    assert parse_float("weightMin", "350.5") == 350.5


@pytest.mark.parametrize("raw, expected", [("true", True), ("1", True), ("False", False), ("no", False)])
def test_parse_bool(raw, expected):
    assert parse_bool("lowStock", raw) is expected


def test_parse_bool_rejects_other_values():
    with pytest.raises(ValidationError) as exc_info:
        parse_bool("lowStock", "maybe")
    assert "lowStock" in exc_info.value.fields


def test_parse_datetime_date_only_bounds():
    start = parse_datetime("addedAfter", "2026-03-01")
    end = parse_datetime("addedBefore", "2026-03-01", end_of_day=True)
    assert start == datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert end.date() == start.date()
    assert end.hour == 23


def test_parse_datetime_with_zulu_suffix():
    assert parse_datetime("startDate", "2026-03-01T10:30:00Z") == datetime(2026, 3, 1, 10, 30, tzinfo=timezone.utc)


def test_parse_datetime_rejects_garbage():
    with pytest.raises(ValidationError) as exc_info:
        parse_datetime("startDate", "yesterday")
    assert "startDate" in exc_info.value.fields


def test_applied_echo():
    params = ListParams(
        search="bella",
        categorical={"species": ["cattle"]},
        ranges={"weight": (300.0, None)},
        flags={"lowStock": True},
        post_filters={"healthStatus": {"warning", "critical"}},
    )
    applied = params.applied()
    assert applied["search"] == "bella"
    assert applied["species"] == ["cattle"]
    assert applied["weightMin"] == 300.0
    assert "weightMax" not in applied
    assert applied["lowStock"] is True
    assert applied["healthStatus"] == ["critical", "warning"]
