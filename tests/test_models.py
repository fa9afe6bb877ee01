import datetime

import pytest

from spendsense.models import (
    ValidationError,
    category_name,
    parse_credentials,
    parse_datetime,
    parse_new_transaction,
)


def test_parse_new_transaction_accepts_client_payload():
    data = parse_new_transaction({
        "amount": 25050,
        "category": "dining",
        "description": "Dinner",
        "date": "2024-05-03T18:30:00.000Z",
        "isIncome": False,
    })
    assert data["amount"] == 25050
    assert data["category"] == "dining"
    assert data["description"] == "Dinner"
    assert data["is_income"] is False
    assert data["date"] == datetime.datetime(2024, 5, 3, 18, 30, tzinfo=datetime.timezone.utc)


def test_parse_new_transaction_defaults():
    before = datetime.datetime.now(datetime.timezone.utc)
    data = parse_new_transaction({"amount": 100, "category": "other"})
    assert data["is_income"] is False
    assert data["description"] is None
    assert data["date"] >= before


def test_income_without_category_defaults_to_income():
    data = parse_new_transaction({"amount": 500000, "isIncome": True})
    assert data["category"] == "income"
    assert data["is_income"] is True


def test_integral_float_amount_is_accepted():
    assert parse_new_transaction({"amount": 1200.0, "category": "other"})["amount"] == 1200


@pytest.mark.parametrize("amount", [None, "100", True, 0, -5, 10.5])
def test_invalid_amounts_are_rejected(amount):
    with pytest.raises(ValidationError) as exc:
        parse_new_transaction({"amount": amount, "category": "dining"})
    assert exc.value.errors[0]["field"] == "amount"


def test_all_errors_are_reported_together():
    with pytest.raises(ValidationError) as exc:
        parse_new_transaction({"amount": -1, "date": "not a date", "isIncome": "yes"})
    fields = {e["field"] for e in exc.value.errors}
    assert fields == {"amount", "category", "date", "isIncome"}


def test_non_object_body_is_rejected():
    with pytest.raises(ValidationError):
        parse_new_transaction(["amount", 5])


def test_parse_datetime_treats_naive_values_as_utc():
    assert parse_datetime("2024-01-31T23:00:00") == datetime.datetime(2024, 1, 31, 23, tzinfo=datetime.timezone.utc)
    assert parse_datetime("2024-01-31") == datetime.datetime(2024, 1, 31, tzinfo=datetime.timezone.utc)


def test_parse_datetime_converts_offsets_to_utc():
    value = parse_datetime("2024-03-01T02:00:00+05:30")
    assert value == datetime.datetime(2024, 2, 29, 20, 30, tzinfo=datetime.timezone.utc)


def test_transaction_to_dict_uses_camel_case(tracker):
    _, _, user = tracker.register_user("ravi", "secret123")
    transaction = tracker.add_transaction(user.id, {
        "amount": 999, "category": "gifts", "date": "2024-02-10T10:00:00Z", "isIncome": False,
    })
    assert transaction.to_dict() == {
        "id": transaction.id,
        "userId": user.id,
        "amount": 999,
        "category": "gifts",
        "description": None,
        "date": "2024-02-10T10:00:00+00:00",
        "isIncome": False,
    }


def test_parse_credentials_enforces_lengths():
    assert parse_credentials({"username": " meera ", "password": "abcdef"}) == ("meera", "abcdef")
    with pytest.raises(ValidationError) as exc:
        parse_credentials({"username": "ab", "password": "12345"})
    assert {e["field"] for e in exc.value.errors} == {"username", "password"}


def test_unknown_category_displays_as_other():
    assert category_name("dining") == "Dining"
    assert category_name("crypto") == "Other"
