"""
SpendSense - Data Models & Request Validation

Users and transactions as they live in storage, plus the validation that
turns a raw JSON request body into something safe to store.

Amounts are integers in minor units (paise): the client multiplies the
rupee value by 100 before sending it. Dates are timezone-aware UTC.

License: MIT
"""

import datetime
from dataclasses import dataclass, field
from typing import Optional

from flask_login import UserMixin


# Known spending/earning categories, in display order.
CATEGORIES = [
    ('income', 'Income'),
    ('shopping', 'Shopping'),
    ('dining', 'Dining'),
    ('housing', 'Housing'),
    ('utilities', 'Utilities'),
    ('transportation', 'Transportation'),
    ('entertainment', 'Entertainment'),
    ('healthcare', 'Healthcare'),
    ('education', 'Education'),
    ('personal', 'Personal'),
    ('subscriptions', 'Subscriptions'),
    ('gifts', 'Gifts'),
    ('other', 'Other'),
]

_CATEGORY_NAMES = dict(CATEGORIES)

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


def category_name(category_id):
    """Display name for a category id; unknown ids display as 'Other'."""
    return _CATEGORY_NAMES.get(category_id, 'Other')


class ValidationError(ValueError):
    """Raised when a request body fails validation. `errors` lists each problem."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(e['message'] for e in self.errors))


@dataclass
class User(UserMixin):
    id: int
    username: str
    password_hash: str = field(default='', repr=False)

    def get_id(self):
        # Flask-Login stores the id in the session as a string
        return str(self.id)

    def to_dict(self):
        return {'id': self.id, 'username': self.username}


@dataclass
class Transaction:
    id: int
    user_id: int
    amount: int
    category: str
    date: datetime.datetime
    description: Optional[str] = None
    is_income: bool = False

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'amount': self.amount,
            'category': self.category,
            'description': self.description,
            'date': self.date.isoformat(),
            'isIncome': self.is_income,
        }


def utc_now():
    return datetime.datetime.now(datetime.timezone.utc)


def to_utc(value):
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def parse_datetime(value):
    """
    Parse an ISO-8601 string (as produced by JavaScript's toISOString) or
    pass a datetime/date through. Returns aware UTC.
    """
    if isinstance(value, datetime.datetime):
        return to_utc(value)
    if isinstance(value, datetime.date):
        return datetime.datetime(value.year, value.month, value.day, tzinfo=datetime.timezone.utc)
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Invalid date")
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return to_utc(datetime.datetime.fromisoformat(text))


def _parse_amount(value, errors):
    if isinstance(value, bool) or value is None:
        errors.append({'field': 'amount', 'message': "Amount is required and must be a whole number."})
        return None
    if isinstance(value, float):
        if not value.is_integer():
            errors.append({'field': 'amount', 'message': "Amount must be a whole number of paise."})
            return None
        value = int(value)
    if not isinstance(value, int):
        errors.append({'field': 'amount', 'message': "Amount is required and must be a whole number."})
        return None
    if value <= 0:
        errors.append({'field': 'amount', 'message': "Amount must be positive."})
        return None
    return value


def parse_new_transaction(payload):
    """
    Validate a create-transaction request body.

    Returns:
        dict with keys amount, category, description, date, is_income

    Raises:
        ValidationError: listing every invalid field
    """
    if not isinstance(payload, dict):
        raise ValidationError([{'field': None, 'message': "Expected a JSON object."}])

    errors = []
    amount = _parse_amount(payload.get('amount'), errors)

    is_income = payload.get('isIncome', False)
    if is_income is None:
        is_income = False
    if not isinstance(is_income, bool):
        errors.append({'field': 'isIncome', 'message': "isIncome must be true or false."})
        is_income = False

    category = payload.get('category')
    if category is None or (isinstance(category, str) and not category.strip()):
        if is_income:
            category = 'income'
        else:
            errors.append({'field': 'category', 'message': "Category is required."})
            category = None
    elif not isinstance(category, str):
        errors.append({'field': 'category', 'message': "Category must be a string."})
        category = None
    else:
        category = category.strip()

    description = payload.get('description')
    if description is not None and not isinstance(description, str):
        errors.append({'field': 'description', 'message': "Description must be a string."})
        description = None

    raw_date = payload.get('date')
    date = None
    if raw_date is None:
        date = utc_now()
    else:
        try:
            date = parse_datetime(raw_date)
        except ValueError:
            errors.append({'field': 'date', 'message': "Date must be an ISO-8601 date or datetime."})

    if errors:
        raise ValidationError(errors)

    return {
        'amount': amount,
        'category': category,
        'description': description,
        'date': date,
        'is_income': is_income,
    }


def parse_credentials(payload):
    """Validate a register/login body. Returns (username, password)."""
    if not isinstance(payload, dict):
        raise ValidationError([{'field': None, 'message': "Expected a JSON object."}])

    username = payload.get('username')
    password = payload.get('password')
    errors = []
    if not isinstance(username, str) or len(username.strip()) < MIN_USERNAME_LENGTH:
        errors.append({'field': 'username',
                       'message': f"Username must be at least {MIN_USERNAME_LENGTH} characters"})
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        errors.append({'field': 'password',
                       'message': f"Password must be at least {MIN_PASSWORD_LENGTH} characters"})
    if errors:
        raise ValidationError(errors)
    return username.strip(), password
