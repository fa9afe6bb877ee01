"""
SpendSense - Finance Engine

The FinanceTracker class holds the business logic of the app: user
registration and login, transaction logging, balance aggregation, category
analytics, and the month-over-month insights. It keeps no per-user state;
everything is read from and written to the injected Storage.

Key Design Principles:
- **User Segregation**: every data method takes a user_id and only ever
  reads that user's rows
- **Security First**: bcrypt password hashing, generic login failure messages
- **Integer Money**: amounts stay in paise end to end

License: MIT
"""

import logging

import bcrypt

from .insights import FALLBACK_TIP, generate_monthly_insights, previous_month
from .models import MIN_PASSWORD_LENGTH, category_name, parse_new_transaction, utc_now

logger = logging.getLogger(__name__)


class FinanceTracker:
    """
    Stateless personal finance engine.

    Auth methods return tuples in the form (success, message, payload) so the
    API layer can map them to status codes without catching exceptions.
    Validation failures on transactions raise models.ValidationError.

    Example:
        tracker = FinanceTracker(MemStorage())
        ok, msg, user = tracker.register_user("asha", "secret123")
        tracker.add_transaction(user.id, {"amount": 25000, "category": "dining"})
        tracker.get_dashboard(user.id)
    """

    def __init__(self, storage):
        self.storage = storage

    # =========================================================================
    # PASSWORD HASHING
    # =========================================================================

    @staticmethod
    def _hash_password(password):
        return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    @staticmethod
    def _check_password(password, password_hash):
        try:
            return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
        except ValueError:
            # Malformed stored hash
            return False

    # =========================================================================
    # USER AUTHENTICATION
    # =========================================================================

    def register_user(self, username, password):
        """
        Create a user with a bcrypt-hashed password.

        Returns:
            tuple: (True, message, User) or (False, error_message, None)
        """
        if self.storage.get_user_by_username(username):
            return False, "Username already exists", None

        user = self.storage.create_user(username, self._hash_password(password))
        if user is None:
            # Taken by a concurrent registration while the password was hashing
            return False, "Username already exists", None
        logger.info("Registered user %s (id=%s)", username, user.id)
        return True, "User registered successfully.", user

    def login_user(self, username, password):
        """
        Verify a username/password pair.

        Returns:
            tuple: (True, message, User) or (False, "Invalid username or password", None)
        """
        user = self.storage.get_user_by_username(username)
        if user and self._check_password(password, user.password_hash):
            return True, "Login successful.", user
        logger.info("Failed login attempt for %s", username)
        return False, "Invalid username or password", None

    def change_password(self, user_id, current_password, new_password):
        """
        Returns:
            tuple: (success bool, message str, None)
        """
        user = self.storage.get_user(user_id)
        if not user:
            return False, "User not found.", None
        if not isinstance(current_password, str) or not self._check_password(current_password, user.password_hash):
            return False, "Current password is incorrect.", None
        if not isinstance(new_password, str) or len(new_password) < MIN_PASSWORD_LENGTH:
            return False, f"New password must be at least {MIN_PASSWORD_LENGTH} characters long.", None

        self.storage.update_password(user.id, self._hash_password(new_password))
        return True, "Password changed successfully.", None

    def get_user(self, user_id):
        return self.storage.get_user(user_id)

    def delete_user(self, user_id):
        """Delete a user and every transaction they own."""
        deleted = self.storage.delete_user(user_id)
        if deleted:
            logger.info("Deleted user %s and their transactions", user_id)
        return deleted

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def add_transaction(self, user_id, payload):
        """Validate a request body and store it. Raises ValidationError."""
        data = parse_new_transaction(payload)
        return self.storage.create_transaction(user_id, data)

    def get_transactions(self, user_id):
        """All of a user's transactions, newest first."""
        return self.storage.get_transactions(user_id)

    def get_transactions_by_month(self, user_id, year, month):
        """A user's transactions for one calendar month (month 1..12), newest first."""
        return self.storage.get_transactions_by_month(user_id, year, month)

    # =========================================================================
    # ANALYTICS
    # =========================================================================

    @staticmethod
    def summarize(transactions):
        """Income, expenses and balance (income - expenses) of a list of transactions."""
        income = 0
        expenses = 0
        for t in transactions:
            if t.is_income:
                income += t.amount
            else:
                expenses += t.amount
        return {
            'balance': income - expenses,
            'income': income,
            'expenses': expenses,
            'transactionCount': len(transactions),
        }

    def get_dashboard(self, user_id, today=None):
        """Current-month totals: balance, income, expenses, transactionCount."""
        today = today or utc_now()
        transactions = self.get_transactions_by_month(user_id, today.year, today.month)
        return self.summarize(transactions)

    def get_category_breakdown(self, user_id, year, month):
        """
        Expense totals per category for one month, largest first.

        Returns:
            list of {"category", "name", "amount", "percentage", "count"}
        """
        totals = {}
        counts = {}
        for t in self.get_transactions_by_month(user_id, year, month):
            if t.is_income:
                continue
            totals[t.category] = totals.get(t.category, 0) + t.amount
            counts[t.category] = counts.get(t.category, 0) + 1

        grand_total = sum(totals.values())
        breakdown = []
        for category, amount in totals.items():
            breakdown.append({
                'category': category,
                'name': category_name(category),
                'amount': amount,
                'percentage': round(amount / grand_total * 100, 1) if grand_total else 0,
                'count': counts[category],
            })
        breakdown.sort(key=lambda row: row['amount'], reverse=True)
        return breakdown

    def get_monthly_summary(self, user_id, months=6, today=None):
        """Income/expense/net per month for the trailing `months` months, oldest first."""
        today = today or utc_now()
        year, month = today.year, today.month
        periods = []
        for _ in range(months):
            periods.append((year, month))
            year, month = previous_month(year, month)

        summary = []
        for year, month in reversed(periods):
            totals = self.summarize(self.get_transactions_by_month(user_id, year, month))
            summary.append({
                'year': year,
                'month': month - 1,
                'income': totals['income'],
                'expenses': totals['expenses'],
                'net': totals['balance'],
                'transactionCount': totals['transactionCount'],
            })
        return summary

    def get_insights(self, user_id, today=None, rng=None):
        """Month-over-month insights comparing this month with the previous one."""
        today = today or utc_now()
        prev_year, prev_month = previous_month(today.year, today.month)
        try:
            current = self.get_transactions_by_month(user_id, today.year, today.month)
            previous = self.get_transactions_by_month(user_id, prev_year, prev_month)
        except Exception:
            logger.exception("Failed to load transactions for insights (user %s)", user_id)
            return [{'text': FALLBACK_TIP, 'type': 'tip'}]
        return generate_monthly_insights(current, previous, rng=rng)
