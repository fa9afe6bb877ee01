"""
SpendSense - AI Financial Insights

Shapes a user's transactions into prompts for a hosted chat-completion model
and turns the model's JSON replies into typed insight payloads:

- Spending forecast for next month
- Budget suggestions for up to 3 categories
- A savings plan towards a target amount
- Recurring bill reminders
- Behavioral spending patterns

Every generator returns None when there is too little history or when the
model call or its reply fails; failures are logged, never raised. Amounts
are sent to the model in rupees (stored paise / 100).

License: MIT
"""

import datetime
import json
import logging
import math
from concurrent.futures import ThreadPoolExecutor

from openai import OpenAI

from .insights import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
MIN_TRANSACTIONS = 5
MIN_TRANSACTIONS_FOR_PATTERNS = 10
DEFAULT_SAVINGS_TARGET = 5000
DEFAULT_TIMEFRAME_MONTHS = 3
DEFAULT_CONFIDENCE = 0.5
PATTERN_SAMPLE_SIZE = 20

# Ordered Monday first; datetime.weekday() indexes into it directly
WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def create_openai_client(api_key=None):
    """OpenAI client; a placeholder key keeps startup working without one."""
    return OpenAI(api_key=api_key or 'dummy-key')


# =============================================================================
# PROMPT DATA SHAPING
# =============================================================================

def format_expenses(transactions):
    """Expense rows as JSON-ready dicts with rupee amounts and YYYY-MM-DD dates."""
    formatted = []
    for t in transactions:
        if t.is_income:
            continue
        row = t.to_dict()
        row['amount'] = t.amount / 100
        row['date'] = t.date.strftime('%Y-%m-%d')
        formatted.append(row)
    return formatted


def group_amounts(formatted):
    """category -> list of rupee amounts, in first-seen order."""
    by_category = {}
    for t in formatted:
        by_category.setdefault(t['category'], []).append(t['amount'])
    return by_category


def category_totals(formatted):
    return {
        category: {'total': sum(amounts), 'avg': sum(amounts) / len(amounts)}
        for category, amounts in group_amounts(formatted).items()
    }


def category_analysis(formatted):
    return {
        category: {
            'total': sum(amounts),
            'avg': sum(amounts) / len(amounts),
            'transactions': len(amounts),
        }
        for category, amounts in group_amounts(formatted).items()
    }


def category_spending(formatted):
    by_category = {}
    for t in formatted:
        entry = by_category.setdefault(t['category'], {'total': 0, 'count': 0, 'transactions': []})
        entry['total'] += t['amount']
        entry['count'] += 1
        entry['transactions'].append(t)
    return by_category


def day_of_week_distribution(formatted):
    distribution = {day: 0 for day in WEEKDAYS}
    for t in formatted:
        weekday = datetime.date.fromisoformat(t['date']).weekday()
        distribution[WEEKDAYS[weekday]] += 1
    return distribution


# =============================================================================
# REPLY PARSING HELPERS
# =============================================================================

def _to_number(value):
    """A finite int/float from a model value, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            number = float(value.strip().replace(',', ''))
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _rounded(value):
    number = _to_number(value)
    return round_half_up(number) if number else 0


def _number_or(value, default):
    number = _to_number(value)
    return number if number else default


def _text(value):
    return value if isinstance(value, str) else ""


def _as_object(value):
    return value if isinstance(value, dict) else {}


class InsightGenerator:
    """
    Generates AI insights through an OpenAI-compatible client.

    Args:
        client: object exposing `chat.completions.create(...)`
        model: chat model name
        max_workers: threads used by generate_all()
    """

    def __init__(self, client, model=DEFAULT_MODEL, max_workers=5):
        self.client = client
        self.model = model
        self.max_workers = max_workers

    def _complete(self, system_prompt, user_prompt):
        """Send one system+user exchange and decode the JSON reply."""
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content
        return _as_object(json.loads(content or '{}'))

    # -------------------------------------------------------------------------

    def spending_forecast(self, transactions):
        """Forecast next month's total and per-category spending."""
        try:
            if len(transactions) < MIN_TRANSACTIONS:
                return None

            formatted = format_expenses(transactions)
            result = self._complete(
                "You are a financial analyst assistant that creates spending forecasts based on "
                "transaction history. Provide the forecast in JSON format with categoryBreakdown "
                "and confidence level (0-1).",
                f"""Based on these transaction patterns, generate a spending forecast for next month in Indian Rupees (₹).
User transaction history: {json.dumps(formatted)}
Category analysis: {json.dumps(category_totals(formatted))}

Provide the forecast in JSON format with:
1. Expected total expense amount
2. Breakdown by category
3. Confidence level (0-1)"""
            )

            breakdown = result.get('categoryBreakdown')
            return {
                'nextMonth': {
                    'totalExpense': _rounded(result.get('totalExpense')),
                    'categoryBreakdown': breakdown if isinstance(breakdown, dict) and breakdown else {},
                },
                'confidence': _number_or(result.get('confidence'), DEFAULT_CONFIDENCE),
            }
        except Exception:
            logger.exception("Error generating spending forecast")
            return None

    def budget_suggestions(self, transactions):
        """Suggest budgets for up to three categories."""
        try:
            if len(transactions) < MIN_TRANSACTIONS:
                return None

            formatted = format_expenses(transactions)
            result = self._complete(
                "You are a financial advisor that creates personalized budget suggestions based on "
                "spending patterns. Provide suggestions in JSON format.",
                f"""Based on these spending patterns in Indian Rupees (₹), generate budget suggestions for up to 3 categories where the user could improve.

Category spending: {json.dumps(category_spending(formatted), indent=2)}

Format each suggestion as a JSON object with:
1. category name
2. current monthly spending
3. suggested budget (in rupees)
4. brief reasoning for the suggestion"""
            )

            suggestions = result.get('suggestions')
            if not isinstance(suggestions, list):
                return None
            parsed = []
            for item in suggestions:
                item = _as_object(item)
                parsed.append({
                    'category': item.get('category'),
                    'currentSpending': _rounded(item.get('currentSpending')),
                    'suggestedBudget': _rounded(item.get('suggestedBudget')),
                    'reasoning': _text(item.get('reasoning')),
                })
            return parsed
        except Exception:
            logger.exception("Error generating budget suggestions")
            return None

    def savings_goal(self, transactions, target_amount=None):
        """Plan category cuts that reach `target_amount` rupees (default 5000)."""
        try:
            if len(transactions) < MIN_TRANSACTIONS:
                return None

            formatted = format_expenses(transactions)
            goal_amount = target_amount or DEFAULT_SAVINGS_TARGET
            result = self._complete(
                "You are a financial advisor that creates personalized savings goals based on "
                "spending patterns. Provide suggestions in JSON format.",
                f"""Based on these spending patterns in Indian Rupees (₹), generate a realistic savings goal to save ₹{goal_amount}.

Category spending: {json.dumps(category_analysis(formatted), indent=2)}

Create a JSON response with:
1. targetAmount (the goal amount in rupees)
2. timeframeMonths (realistic number of months to achieve the goal, between 1-12)
3. categoryCuts (array of categories where spending can be reduced)
   - Each categoryCut should have: category, currentSpending, suggestedReduction, and monthlySavings
4. brief reasoning explaining the plan"""
            )

            cuts = result.get('categoryCuts')
            category_cuts = []
            if isinstance(cuts, list):
                for cut in cuts:
                    cut = _as_object(cut)
                    category_cuts.append({
                        'category': cut.get('category'),
                        'currentSpending': _rounded(cut.get('currentSpending')),
                        'suggestedReduction': _rounded(cut.get('suggestedReduction')),
                        'monthlySavings': _rounded(cut.get('monthlySavings')),
                    })

            return {
                'targetAmount': _number_or(result.get('targetAmount'), goal_amount),
                'timeframeMonths': _number_or(result.get('timeframeMonths'), DEFAULT_TIMEFRAME_MONTHS),
                'categoryCuts': category_cuts,
                'reasoning': _text(result.get('reasoning')),
            }
        except Exception:
            logger.exception("Error generating savings goal")
            return None

    def bill_reminders(self, transactions):
        """Spot recurring bills and estimate their next due dates."""
        try:
            if len(transactions) < MIN_TRANSACTIONS_FOR_PATTERNS:
                return None

            formatted = format_expenses(transactions)
            result = self._complete(
                "You are a financial assistant that identifies recurring bill patterns from "
                "transaction history. Provide detected bill reminders in JSON format.",
                f"""Based on these transactions in Indian Rupees (₹), identify any recurring bills or subscriptions and when they might be due next.

Transaction history: {json.dumps(formatted, indent=2)}

Create a JSON response with an array of bill reminders, each containing:
1. description (what the bill seems to be for)
2. estimatedAmount (in rupees)
3. dueDate (estimated next due date in YYYY-MM-DD format)
4. confidence (0-1 indicating how confident you are in this prediction)"""
            )

            reminders = result.get('billReminders')
            if not isinstance(reminders, list):
                return None
            parsed = []
            for item in reminders:
                item = _as_object(item)
                parsed.append({
                    'description': _text(item.get('description')),
                    'estimatedAmount': _rounded(item.get('estimatedAmount')),
                    'dueDate': _text(item.get('dueDate')),
                    'confidence': _number_or(item.get('confidence'), DEFAULT_CONFIDENCE),
                })
            return parsed
        except Exception:
            logger.exception("Error detecting bill reminders")
            return None

    def spending_patterns(self, transactions):
        """Describe behavioral spending patterns with suggestions."""
        try:
            if len(transactions) < MIN_TRANSACTIONS_FOR_PATTERNS:
                return None

            formatted = format_expenses(transactions)
            total_expense = sum(t['amount'] for t in formatted)
            result = self._complete(
                "You are a financial behavior analyst that identifies spending patterns and "
                "provides helpful insights. Provide detected patterns in JSON format.",
                f"""Based on these transactions in Indian Rupees (₹), identify behavioral spending patterns that could help the user save money.

Transaction history: {json.dumps(formatted[:PATTERN_SAMPLE_SIZE], indent=2)}
Day of week distribution: {json.dumps(day_of_week_distribution(formatted), indent=2)}
Total expenses: ₹{round(total_expense, 2)}

Create a JSON response with an array of spending patterns, each containing:
1. pattern (description of the detected pattern)
2. impact (approximate percentage of total spending affected by this pattern)
3. suggestion (helpful advice for managing this spending pattern)"""
            )

            patterns = result.get('patterns')
            if not isinstance(patterns, list):
                return None
            parsed = []
            for item in patterns:
                item = _as_object(item)
                parsed.append({
                    'pattern': _text(item.get('pattern')),
                    'impact': _number_or(item.get('impact'), 0),
                    'suggestion': _text(item.get('suggestion')),
                })
            return parsed
        except Exception:
            logger.exception("Error detecting spending patterns")
            return None

    # -------------------------------------------------------------------------

    def generate_all(self, transactions):
        """
        Run every generator concurrently and keep the ones that produced a value.

        Keys appear in the order spendingForecast, budgetSuggestions,
        savingsGoals (a one-element list), billReminders, spendingPatterns.
        """
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            forecast = pool.submit(self.spending_forecast, transactions)
            budgets = pool.submit(self.budget_suggestions, transactions)
            savings = pool.submit(self.savings_goal, transactions)
            bills = pool.submit(self.bill_reminders, transactions)
            patterns = pool.submit(self.spending_patterns, transactions)

        insights = {}
        if forecast.result() is not None:
            insights['spendingForecast'] = forecast.result()
        if budgets.result() is not None:
            insights['budgetSuggestions'] = budgets.result()
        if savings.result() is not None:
            insights['savingsGoals'] = [savings.result()]
        if bills.result() is not None:
            insights['billReminders'] = bills.result()
        if patterns.result() is not None:
            insights['spendingPatterns'] = patterns.result()
        return insights
