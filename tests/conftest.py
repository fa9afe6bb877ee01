import datetime
import json
from types import SimpleNamespace

import pytest

from spendsense.api import create_app
from spendsense.config import Config
from spendsense.engine import FinanceTracker
from spendsense.storage import MemStorage


FORECAST_REPLY = {
    "totalExpense": 12500.6,
    "categoryBreakdown": {"dining": 4000, "housing": 8500},
    "confidence": 0.8,
}
BUDGET_REPLY = {
    "suggestions": [
        {"category": "dining", "currentSpending": 4200.4, "suggestedBudget": 3000, "reasoning": "Cook at home."},
    ]
}
SAVINGS_REPLY = {
    "targetAmount": 5000,
    "timeframeMonths": 4,
    "categoryCuts": [
        {"category": "shopping", "currentSpending": 3000, "suggestedReduction": 1000.5, "monthlySavings": 1250},
    ],
    "reasoning": "Trim shopping.",
}
BILLS_REPLY = {
    "billReminders": [
        {"description": "Netflix", "estimatedAmount": 649, "dueDate": "2024-06-05", "confidence": 0.9},
    ]
}
PATTERNS_REPLY = {
    "patterns": [
        {"pattern": "Weekend dining spikes", "impact": 18, "suggestion": "Plan weekend meals."},
    ]
}

DEFAULT_REPLIES = {
    "spending forecasts": FORECAST_REPLY,
    "budget suggestions": BUDGET_REPLY,
    "savings goals": SAVINGS_REPLY,
    "recurring bill": BILLS_REPLY,
    "behavior analyst": PATTERNS_REPLY,
}


class FakeChatClient:
    """
    Stands in for openai.OpenAI. Picks a canned reply by matching a keyword
    in the system prompt; a reply may be a dict (sent as JSON), a raw string,
    None (empty content), or an Exception instance (raised).
    """

    def __init__(self, replies=None):
        self.replies = dict(DEFAULT_REPLIES)
        if replies:
            self.replies.update(replies)
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        system_prompt = kwargs["messages"][0]["content"]
        for keyword, reply in self.replies.items():
            if keyword in system_prompt:
                break
        else:
            reply = {}
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, (dict, list)):
            content = json.dumps(reply)
        else:
            content = reply
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    def prompts_for(self, keyword):
        return [c for c in self.calls if keyword in c["messages"][0]["content"]]


@pytest.fixture
def fake_ai():
    return FakeChatClient()


@pytest.fixture
def storage():
    return MemStorage()


@pytest.fixture
def tracker(storage):
    return FinanceTracker(storage)


@pytest.fixture
def app(storage, fake_ai):
    config = Config(TESTING=True, SECRET_KEY="test-secret", STORAGE_BACKEND="memory", LOG_LEVEL="WARNING")
    return create_app(config, storage=storage, ai_client=fake_ai)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_client(client):
    response = client.post("/api/register", json={"username": "asha", "password": "secret123"})
    assert response.status_code == 201
    return client


def utc(year, month, day, hour=12):
    return datetime.datetime(year, month, day, hour, tzinfo=datetime.timezone.utc)


def make_transactions(tracker, user_id, count, when=None, category="dining", amount=10000, is_income=False):
    when = when or datetime.datetime.now(datetime.timezone.utc)
    created = []
    for i in range(count):
        created.append(tracker.add_transaction(user_id, {
            "amount": amount,
            "category": category,
            "description": f"{category} {i}",
            "date": when - datetime.timedelta(minutes=i),
            "isIncome": is_income,
        }))
    return created
