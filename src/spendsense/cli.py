"""
SpendSense - Terminal Client

Interactive menu over the same engine the web API uses. Handy for trying
the app without a browser, and for seeding demo data into a sqlite file.
"""

import datetime
import json
import os
import sys

from .ai_insights import InsightGenerator, create_openai_client
from .config import Config, configure_logging
from .demo_data import generate_demo_transactions
from .engine import FinanceTracker
from .models import CATEGORIES, ValidationError, category_name, parse_credentials
from .storage import create_storage


def format_rupees(paise):
    """12345 -> '₹123.45'"""
    sign = '-' if paise < 0 else ''
    return f"{sign}₹{abs(paise) / 100:,.2f}"


def parse_rupees(text):
    """'1,250.50' -> 125050 paise. Raises ValueError on bad input."""
    value = float(text.replace(',', '').replace('₹', '').strip())
    if value <= 0:
        raise ValueError("Amount must be positive")
    return int(round(value * 100))


def clear_screen():
    os.system('cls' if os.name == 'nt' else 'clear')


def print_status(tracker, user):
    """Prints a summary of the current month."""
    summary = tracker.get_dashboard(user.id)
    clear_screen()
    print("=" * 60)
    print(f"      SPENDSENSE - {user.username}")
    print("=" * 60)
    print(f"Balance: {format_rupees(summary['balance'])}    "
          f"Income: {format_rupees(summary['income'])}    "
          f"Expenses: {format_rupees(summary['expenses'])}")
    print("-" * 60)


def handle_auth(tracker):
    """Log in or register. Returns the User or None to quit."""
    while True:
        print("\n--- Welcome to SpendSense ---")
        print("1. Log in")
        print("2. Register")
        print("3. Exit")
        choice = input("> ").strip()
        if choice == '3':
            return None
        if choice not in ('1', '2'):
            print("Invalid choice, please try again.")
            continue

        username = input("Username: ").strip()
        password = input("Password: ")
        if choice == '1':
            success, message, user = tracker.login_user(username, password)
        else:
            try:
                username, password = parse_credentials({'username': username, 'password': password})
            except ValidationError as e:
                print(f" -> {e}")
                continue
            success, message, user = tracker.register_user(username, password)
        print(f" -> {message}")
        if success:
            return user


def handle_log_transaction(tracker, user, is_income):
    """Handles user input for logging income or an expense."""
    label = "Income" if is_income else "Expense"
    print(f"\n--- Log {label} ---")

    category = 'income'
    if not is_income:
        options = [c for c in CATEGORIES if c[0] != 'income']
        for i, (_, name) in enumerate(options):
            print(f" [{i + 1}] {name}")
        try:
            category = options[int(input("Category > ")) - 1][0]
        except (ValueError, IndexError):
            print(" -> Invalid selection.")
            input("\nPress Enter to return to the main menu")
            return

    try:
        amount = parse_rupees(input("Amount (₹): "))
    except ValueError:
        print(" -> Invalid amount. Please enter a positive number.")
        input("\nPress Enter to return to the main menu")
        return

    description = input("Description (optional): ").strip() or None
    date_text = input("Date YYYY-MM-DD (blank for today): ").strip()

    payload = {'amount': amount, 'category': category, 'description': description, 'isIncome': is_income}
    if date_text:
        payload['date'] = date_text
    try:
        transaction = tracker.add_transaction(user.id, payload)
        print(f" -> Logged {format_rupees(transaction.amount)} on {transaction.date:%Y-%m-%d}")
    except ValidationError as e:
        print(f" -> {e}")
    input("\nPress Enter to return to the main menu")


def handle_view_transactions(tracker, user, limit=30):
    """Displays the most recent transactions."""
    print(f"\n--- Recent Transactions (last {limit}) ---")
    transactions = tracker.get_transactions(user.id)[:limit]
    if not transactions:
        print("No transactions yet.")
    else:
        print(f"{'Date':<12} {'Category':<16} {'Description':<24} {'Amount':>14}")
        print("-" * 69)
        for t in transactions:
            amount = format_rupees(t.amount if t.is_income else -t.amount)
            print(f"{t.date:%Y-%m-%d}   {category_name(t.category):<16} {(t.description or '')[:24]:<24} {amount:>14}")
    input("\nPress Enter to return to the main menu")


def handle_view_analytics(tracker, user):
    """Shows this month's category breakdown and the month-over-month tips."""
    today = datetime.datetime.now(datetime.timezone.utc)
    print(f"\n--- Spending by Category ({today:%B %Y}) ---")
    breakdown = tracker.get_category_breakdown(user.id, today.year, today.month)
    if not breakdown:
        print("No expenses this month.")
    for row in breakdown:
        print(f"{row['name']:<16} {format_rupees(row['amount']):>14}  {row['percentage']:>5}%")

    print("\n--- Insights ---")
    for insight in tracker.get_insights(user.id):
        print(f" * {insight['text']}")
    input("\nPress Enter to return to the main menu")


def handle_ai_insights(ai, tracker, user):
    """Requests the full AI insight bundle and prints it as JSON."""
    print("\n--- AI Insights ---")
    transactions = tracker.get_transactions(user.id)
    if len(transactions) < 5:
        print("Add more transactions to receive AI-powered financial insights")
    else:
        print("Asking the model, this can take a few seconds...")
        print(json.dumps(ai.generate_all(transactions), indent=2, ensure_ascii=False))
    input("\nPress Enter to return to the main menu")


def handle_seed_demo(tracker, user):
    print("\n--- Seed Demo Data ---")
    info = generate_demo_transactions(tracker, user.id)
    print(f" -> Created {info['transactions_created']} transactions "
          f"from {info['start_date']} to {info['end_date']}")
    input("\nPress Enter to return to the main menu")


def run_main_menu(tracker, ai, user):
    while True:
        print_status(tracker, user)
        print("\n--- MAIN MENU ---")
        print("1. View Transactions")
        print("2. Log Income")
        print("3. Log Expense")
        print("4. Analytics & Insights")
        print("5. AI Insights")
        print("6. Seed Demo Data")
        print("7. Exit")

        choice = input("> ").strip()

        if choice == '1':
            handle_view_transactions(tracker, user)
        elif choice == '2':
            handle_log_transaction(tracker, user, is_income=True)
        elif choice == '3':
            handle_log_transaction(tracker, user, is_income=False)
        elif choice == '4':
            handle_view_analytics(tracker, user)
        elif choice == '5':
            handle_ai_insights(ai, tracker, user)
        elif choice == '6':
            handle_seed_demo(tracker, user)
        elif choice == '7':
            print("Goodbye!")
            break
        else:
            print("Invalid choice, please try again.")
            input("Press Enter to continue...")


def main():
    config = Config.from_env()
    configure_logging('WARNING')
    try:
        tracker = FinanceTracker(create_storage(config))
    except Exception as e:
        print(f"FATAL: Could not initialize storage. Error: {e}")
        return 1
    ai = InsightGenerator(create_openai_client(config.OPENAI_API_KEY), model=config.OPENAI_MODEL)

    if config.STORAGE_BACKEND == 'memory':
        print("Note: memory storage is in use; data is lost on exit. Set STORAGE_BACKEND=sqlite to keep it.")

    try:
        user = handle_auth(tracker)
        if user:
            run_main_menu(tracker, ai, user)
    except (KeyboardInterrupt, EOFError):
        print("\nGoodbye!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
