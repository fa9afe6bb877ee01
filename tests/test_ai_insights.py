import json

from conftest import FakeChatClient, make_transactions, utc
from spendsense.ai_insights import (
    InsightGenerator,
    day_of_week_distribution,
    format_expenses,
)


def _transactions(tracker, count):
    _, _, user = tracker.register_user("asha", "secret123")
    return make_transactions(tracker, user.id, count, when=utc(2024, 6, 10))


def test_format_expenses_drops_income_and_converts_to_rupees(tracker):
    _, _, user = tracker.register_user("asha", "secret123")
    tracker.add_transaction(user.id, {"amount": 25050, "category": "dining", "date": utc(2024, 6, 3)})
    tracker.add_transaction(user.id, {"amount": 900000, "isIncome": True, "date": utc(2024, 6, 1)})

    formatted = format_expenses(tracker.get_transactions(user.id))
    assert len(formatted) == 1
    assert formatted[0]["amount"] == 250.5
    assert formatted[0]["date"] == "2024-06-03"


def test_day_of_week_distribution_starts_on_monday():
    distribution = day_of_week_distribution([{"date": "2024-06-03"}, {"date": "2024-06-09"}, {"date": "2024-06-10"}])
    assert list(distribution)[0] == "Monday"
    assert distribution["Monday"] == 2
    assert distribution["Sunday"] == 1
    assert distribution["Friday"] == 0


def test_too_few_transactions_skip_the_model(tracker, fake_ai):
    generator = InsightGenerator(fake_ai)
    transactions = _transactions(tracker, 4)
    assert generator.spending_forecast(transactions) is None
    assert generator.budget_suggestions(transactions) is None
    assert generator.savings_goal(transactions) is None
    assert fake_ai.calls == []


def test_bills_and_patterns_need_ten_transactions(tracker, fake_ai):
    generator = InsightGenerator(fake_ai)
    transactions = _transactions(tracker, 9)
    assert generator.bill_reminders(transactions) is None
    assert generator.spending_patterns(transactions) is None
    assert fake_ai.calls == []


def test_spending_forecast(tracker, fake_ai):
    generator = InsightGenerator(fake_ai, model="test-model")
    forecast = generator.spending_forecast(_transactions(tracker, 5))
    assert forecast == {
        "nextMonth": {"totalExpense": 12501, "categoryBreakdown": {"dining": 4000, "housing": 8500}},
        "confidence": 0.8,
    }
    call = fake_ai.calls[0]
    assert call["model"] == "test-model"
    assert call["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in call["messages"]] == ["system", "user"]
    assert "₹" in call["messages"][1]["content"]


def test_forecast_defaults_for_missing_fields(tracker):
    ai = FakeChatClient({"spending forecasts": {"confidence": 0}})
    forecast = InsightGenerator(ai).spending_forecast(_transactions(tracker, 5))
    assert forecast == {"nextMonth": {"totalExpense": 0, "categoryBreakdown": {}}, "confidence": 0.5}


def test_budget_suggestions(tracker, fake_ai):
    suggestions = InsightGenerator(fake_ai).budget_suggestions(_transactions(tracker, 5))
    assert suggestions == [
        {"category": "dining", "currentSpending": 4200, "suggestedBudget": 3000, "reasoning": "Cook at home."},
    ]


def test_budget_suggestions_reject_non_list(tracker):
    ai = FakeChatClient({"budget suggestions": {"suggestions": "spend less"}})
    assert InsightGenerator(ai).budget_suggestions(_transactions(tracker, 5)) is None


def test_bill_reminders_and_patterns_reject_non_list(tracker):
    ai = FakeChatClient({
        "recurring bill": {"billReminders": {"description": "Netflix"}},
        "behavior analyst": {"patterns": "weekends"},
    })
    generator = InsightGenerator(ai)
    transactions = _transactions(tracker, 10)
    assert generator.bill_reminders(transactions) is None
    assert generator.spending_patterns(transactions) is None


def test_reminder_and_pattern_defaults(tracker):
    ai = FakeChatClient({
        "recurring bill": {"billReminders": [{"description": "Gym", "estimatedAmount": 999.5}]},
        "behavior analyst": {"patterns": [{"pattern": "Late-night orders"}]},
    })
    generator = InsightGenerator(ai)
    transactions = _transactions(tracker, 10)
    assert generator.bill_reminders(transactions) == [
        {"description": "Gym", "estimatedAmount": 1000, "dueDate": "", "confidence": 0.5},
    ]
    assert generator.spending_patterns(transactions) == [
        {"pattern": "Late-night orders", "impact": 0, "suggestion": ""},
    ]


def test_numeric_strings_in_replies_are_accepted(tracker):
    ai = FakeChatClient({
        "spending forecasts": {"totalExpense": "12,345.5", "confidence": "0.7"},
        "budget suggestions": {"suggestions": [
            {"category": "dining", "currentSpending": "4200.6", "suggestedBudget": "three thousand"},
        ]},
    })
    generator = InsightGenerator(ai)
    transactions = _transactions(tracker, 5)
    forecast = generator.spending_forecast(transactions)
    assert forecast["nextMonth"]["totalExpense"] == 12346
    assert forecast["confidence"] == 0.7
    [suggestion] = generator.budget_suggestions(transactions)
    assert suggestion["currentSpending"] == 4201
    assert suggestion["suggestedBudget"] == 0


def test_savings_goal_uses_target_and_defaults(tracker, fake_ai):
    generator = InsightGenerator(fake_ai)
    transactions = _transactions(tracker, 5)

    goal = generator.savings_goal(transactions, 20000)
    assert goal == {
        "targetAmount": 5000,
        "timeframeMonths": 4,
        "categoryCuts": [
            {"category": "shopping", "currentSpending": 3000, "suggestedReduction": 1001, "monthlySavings": 1250},
        ],
        "reasoning": "Trim shopping.",
    }
    assert "save ₹20000" in fake_ai.prompts_for("savings goals")[0]["messages"][1]["content"]

    generator.savings_goal(transactions)
    assert "save ₹5000" in fake_ai.prompts_for("savings goals")[1]["messages"][1]["content"]


def test_savings_goal_fills_missing_fields(tracker):
    ai = FakeChatClient({"savings goals": {"categoryCuts": "none"}})
    goal = InsightGenerator(ai).savings_goal(_transactions(tracker, 5), 8000)
    assert goal == {"targetAmount": 8000, "timeframeMonths": 3, "categoryCuts": [], "reasoning": ""}


def test_bill_reminders(tracker, fake_ai):
    reminders = InsightGenerator(fake_ai).bill_reminders(_transactions(tracker, 10))
    assert reminders == [
        {"description": "Netflix", "estimatedAmount": 649, "dueDate": "2024-06-05", "confidence": 0.9},
    ]


def test_spending_patterns_prompt_is_sampled(tracker, fake_ai):
    patterns = InsightGenerator(fake_ai).spending_patterns(_transactions(tracker, 25))
    assert patterns == [{"pattern": "Weekend dining spikes", "impact": 18, "suggestion": "Plan weekend meals."}]

    prompt = fake_ai.prompts_for("behavior analyst")[0]["messages"][1]["content"]
    history = prompt.split("Transaction history: ")[1].split("\nDay of week distribution")[0]
    assert len(json.loads(history)) == 20
    assert "Total expenses: ₹2500" in prompt


def test_model_errors_return_none(tracker):
    ai = FakeChatClient({
        "spending forecasts": RuntimeError("rate limited"),
        "budget suggestions": "not json at all",
        "recurring bill": None,
    })
    generator = InsightGenerator(ai)
    transactions = _transactions(tracker, 10)
    assert generator.spending_forecast(transactions) is None
    assert generator.budget_suggestions(transactions) is None
    assert generator.bill_reminders(transactions) is None


def test_generate_all_collects_every_insight(tracker, fake_ai):
    insights = InsightGenerator(fake_ai).generate_all(_transactions(tracker, 10))
    assert list(insights) == ["spendingForecast", "budgetSuggestions", "savingsGoals", "billReminders", "spendingPatterns"]
    assert len(insights["savingsGoals"]) == 1
    assert len(fake_ai.calls) == 5


def test_generate_all_omits_failed_and_ineligible_parts(tracker):
    ai = FakeChatClient({"budget suggestions": RuntimeError("boom")})
    insights = InsightGenerator(ai).generate_all(_transactions(tracker, 6))
    assert list(insights) == ["spendingForecast", "savingsGoals"]
