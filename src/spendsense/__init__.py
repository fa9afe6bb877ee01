"""
SpendSense - Personal Expense Tracker with AI Insights

Track income and expenses, watch monthly balances, and get financial
insights (forecasts, budgets, savings plans, bill reminders, spending
patterns) from a hosted chat-completion model.

License: MIT
"""

__version__ = "1.0.0"
