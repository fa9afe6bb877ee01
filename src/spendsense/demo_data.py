"""
SpendSense - Demo Data Generator

Generates realistic fake transaction history for demo mode and local
testing. Creates a persona with a few months of salary, monthly bills,
and everyday spending, enough for every AI insight to have data.
"""

import datetime
import random

from faker import Faker

from .insights import previous_month
from .models import utc_now

# description, amount in rupees, day of month, category
RECURRING_BILLS = [
    ("Rent", 18000, 1, "housing"),
    ("Electricity Bill", 1450, 15, "utilities"),
    ("Broadband Internet", 799, 10, "utilities"),
    ("Netflix", 649, 5, "subscriptions"),
    ("Spotify", 119, 8, "subscriptions"),
    ("Mobile Recharge", 399, 20, "utilities"),
]

# category, (min, max) rupees, relative weight
EVERYDAY_SPENDING = [
    ("dining", (150, 1200), 5),
    ("shopping", (300, 4000), 3),
    ("transportation", (60, 600), 4),
    ("entertainment", (200, 1500), 2),
    ("healthcare", (100, 2500), 1),
    ("personal", (100, 1500), 2),
    ("education", (500, 3000), 1),
    ("gifts", (300, 2500), 1),
]

DINING_PLACES = ["Swiggy order", "Zomato order", "Cafe Coffee Day", "Dinner out", "Lunch with team"]
TRANSPORT_TRIPS = ["Uber ride", "Ola ride", "Metro card top-up", "Fuel", "Auto rickshaw"]


def _at(year, month, day, hour=12):
    return datetime.datetime(year, month, day, hour, tzinfo=datetime.timezone.utc)


def _month_start(year, month):
    return datetime.date(year, month, 1)


def _describe(fake, category):
    if category == "dining":
        return fake.random_element(DINING_PLACES)
    if category == "transportation":
        return fake.random_element(TRANSPORT_TRIPS)
    if category == "shopping":
        return f"{fake.company()} purchase"
    return fake.catch_phrase()


def generate_demo_transactions(tracker, user_id, months=4, today=None, seed=None):
    """
    Generate demo transactions for a user.

    Creates, for each of the last `months` months up to today:
    - one salary deposit on the 1st
    - the recurring bills in RECURRING_BILLS (only days already passed)
    - 8-15 random everyday expenses

    Args:
        tracker: FinanceTracker instance
        user_id: user to generate data for
        months: how many months of history, including the current one
        today: reference "now" (defaults to the current UTC time)
        seed: make the output repeatable

    Returns:
        dict with the number of transactions created and the date range
    """
    today = today or utc_now()
    fake = Faker('en_IN')
    rng = random.Random(seed)
    if seed is not None:
        fake.seed_instance(seed)

    periods = []
    year, month = today.year, today.month
    for _ in range(months):
        periods.append((year, month))
        year, month = previous_month(year, month)
    periods.reverse()

    salary = rng.choice([65000, 72000, 80000, 95000])
    categories = [c for c, _, _ in EVERYDAY_SPENDING]
    weights = [w for _, _, w in EVERYDAY_SPENDING]
    ranges = {c: r for c, r, _ in EVERYDAY_SPENDING}
    created = 0

    def add(amount_rupees, category, description, when, is_income=False):
        nonlocal created
        tracker.add_transaction(user_id, {
            'amount': int(round(amount_rupees * 100)),
            'category': category,
            'description': description,
            'date': when,
            'isIncome': is_income,
        })
        created += 1

    for year, month in periods:
        is_current = (year, month) == (today.year, today.month)
        last_day = today.day if is_current else 28

        add(salary, "income", f"Salary {_month_start(year, month).strftime('%B')}", _at(year, month, 1, 9), True)

        for description, amount, day, category in RECURRING_BILLS:
            if day <= last_day:
                add(amount, category, description, _at(year, month, day, 10))

        for _ in range(rng.randint(8, 15)):
            category = rng.choices(categories, weights=weights)[0]
            low, high = ranges[category]
            amount = rng.randint(low, high)
            day = rng.randint(1, last_day)
            add(amount, category, _describe(fake, category), _at(year, month, day, rng.randint(8, 22)))

    return {
        'transactions_created': created,
        'start_date': _month_start(*periods[0]).isoformat(),
        'end_date': today.date().isoformat(),
    }
