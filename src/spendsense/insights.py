"""
SpendSense - Month-over-Month Spending Insights

Rule-based tips shown on the home screen. They compare this month's
expense totals per category with last month's; no external calls.

License: MIT
"""

import logging
import math
import random
from collections import OrderedDict

logger = logging.getLogger(__name__)

INCREASE_THRESHOLD = 25
DECREASE_THRESHOLD = -25
MAX_INSIGHTS = 3

WELCOME_TIP = "Welcome to your expense tracker! Add more transactions to get personalized insights."
FALLBACK_TIP = "Add more transactions to get personalized spending insights."
GENERIC_TIPS = [
    "Try setting a monthly budget for each spending category to better track your expenses.",
    "Consider saving at least 20% of your income each month for financial security.",
    "Review your subscriptions regularly to identify services you no longer use.",
]


def round_half_up(value):
    """Round to the nearest integer, halves toward +infinity."""
    return int(math.floor(value + 0.5))


def previous_month(year, month):
    """(year, month) of the month before; month is 1..12."""
    if month == 1:
        return year - 1, 12
    return year, month - 1


def expenses_by_category(transactions):
    """Sum expense amounts per category, keeping first-seen order."""
    totals = OrderedDict()
    for t in transactions:
        if t.is_income:
            continue
        totals[t.category] = totals.get(t.category, 0) + t.amount
    return totals


def _insight(text, insight_type):
    return {'text': text, 'type': insight_type}


def _compare_months(current, previous, rng):
    if not previous:
        return [_insight(WELCOME_TIP, 'tip')]

    insights = []
    current_totals = expenses_by_category(current)
    previous_totals = expenses_by_category(previous)

    for category, amount in current_totals.items():
        previous_amount = previous_totals.get(category, 0)

        if previous_amount == 0:
            insights.append(_insight(
                f"New spending category detected: {category}. "
                "Consider if this is a one-time expense or a new budget item.",
                'new_category'
            ))
            continue

        change = round_half_up((amount - previous_amount) / previous_amount * 100)
        if change >= INCREASE_THRESHOLD:
            insights.append(_insight(
                f"Your {category} expenses increased by {change}% compared to last month. "
                "Consider setting a budget for this category.",
                'increase'
            ))
        elif change <= DECREASE_THRESHOLD:
            insights.append(_insight(
                f"Great job! You reduced your {category} expenses by {abs(change)}% compared to last month.",
                'decrease'
            ))

    if not insights:
        insights.append(_insight(rng.choice(GENERIC_TIPS), 'tip'))

    return insights[:MAX_INSIGHTS]


def generate_monthly_insights(current, previous, rng=None):
    """
    Build 1-3 insights from two months of transactions.

    Args:
        current: transactions of the current month
        previous: transactions of the previous month
        rng: object with a `choice` method, used for the generic tip

    Returns:
        list of {"text": str, "type": "increase"|"decrease"|"new_category"|"tip"}
    """
    try:
        return _compare_months(current, previous, rng or random)
    except Exception:
        logger.exception("Failed to build monthly insights")
        return [_insight(FALLBACK_TIP, 'tip')]
