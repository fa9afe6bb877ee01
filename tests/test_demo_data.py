from conftest import utc
from spendsense.demo_data import RECURRING_BILLS, generate_demo_transactions


def test_demo_history_covers_requested_months(tracker):
    _, _, user = tracker.register_user("demo_user", "secret123")
    today = utc(2024, 6, 25)
    info = generate_demo_transactions(tracker, user.id, months=4, today=today, seed=3)

    transactions = tracker.get_transactions(user.id)
    assert info["transactions_created"] == len(transactions)
    assert info["start_date"] == "2024-03-01"
    assert info["end_date"] == "2024-06-25"
    assert {(t.date.year, t.date.month) for t in transactions} == {(2024, 3), (2024, 4), (2024, 5), (2024, 6)}
    assert all(t.date <= today.replace(hour=23) for t in transactions)


def test_every_month_has_salary_and_rent(tracker):
    _, _, user = tracker.register_user("demo_user", "secret123")
    generate_demo_transactions(tracker, user.id, months=3, today=utc(2024, 2, 20), seed=1)

    for year, month in ((2023, 12), (2024, 1), (2024, 2)):
        rows = tracker.get_transactions_by_month(user.id, year, month)
        salaries = [t for t in rows if t.is_income]
        assert len(salaries) == 1 and salaries[0].category == "income"
        assert any(t.description == "Rent" and t.amount == 1800000 for t in rows)
        assert len(rows) >= 1 + len(RECURRING_BILLS) + 8


def test_current_month_skips_bills_not_yet_due(tracker):
    _, _, user = tracker.register_user("demo_user", "secret123")
    generate_demo_transactions(tracker, user.id, months=1, today=utc(2024, 6, 6), seed=9)

    descriptions = {t.description for t in tracker.get_transactions(user.id)}
    assert "Netflix" in descriptions
    assert "Electricity Bill" not in descriptions
    assert "Mobile Recharge" not in descriptions


def test_seed_makes_output_repeatable(tracker):
    _, _, first = tracker.register_user("demo_a", "secret123")
    _, _, second = tracker.register_user("demo_b", "secret123")
    today = utc(2024, 6, 25)
    generate_demo_transactions(tracker, first.id, today=today, seed=42)
    generate_demo_transactions(tracker, second.id, today=today, seed=42)

    def shape(user_id):
        return [(t.amount, t.category, t.description, t.date) for t in tracker.get_transactions(user_id)]

    assert shape(first.id) == shape(second.id)
