"""
SpendSense - Flask REST API

RESTful API for the SpendSense expense tracker. It uses Flask with
Flask-Login for session-based authentication and serves endpoints for:

Authentication:
- User registration, login, logout, password change
- Demo login with generated sample data

Transactions:
- Logging income and expenses
- Listing all transactions or one calendar month

Analytics:
- Current-month dashboard (balance, income, expenses)
- Category breakdown and trailing monthly summary
- Month-over-month insights

AI Insights:
- Spending forecast, budget suggestions, savings goals, bill reminders and
  spending patterns from a hosted chat-completion model

Security:
- Flask-Login session cookies
- User data segregation (every data route reads current_user's rows only)
- CORS enabled with credentials for a separately hosted web client
- bcrypt password hashing (handled by the engine)

License: MIT
"""

import datetime
import logging
import uuid

from flask import Flask, jsonify, request, send_from_directory, session
from flask.json.provider import DefaultJSONProvider
from flask_cors import CORS
from flask_login import current_user, login_required
from werkzeug.exceptions import HTTPException

from .ai_insights import InsightGenerator, MIN_TRANSACTIONS, create_openai_client
from .config import Config, configure_logging
from .demo_data import generate_demo_transactions
from .engine import FinanceTracker
from .models import CATEGORIES, ValidationError, parse_credentials, utc_now
from .session_controller import SessionController
from .storage import create_storage

logger = logging.getLogger(__name__)


class CustomJSONProvider(DefaultJSONProvider):
    """
    JSON provider for domain objects.

    Converts:
    - domain objects (Transaction, User) via their to_dict()
    - datetime/date to ISO 8601
    """

    def default(self, obj):
        if hasattr(obj, 'to_dict'):
            return obj.to_dict()
        if isinstance(obj, (datetime.datetime, datetime.date)):
            return obj.isoformat()
        return super().default(obj)


def _current_user_id():
    return current_user.id


def _json_object():
    """Request body as a dict; anything else becomes {}."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _parse_wire_month(year_text, month_text):
    """
    Parse a (year, month) pair where month is 0..11 as sent by the web client.
    Returns (year, month 1..12) or None.
    """
    try:
        year = int(year_text)
        month = int(month_text)
    except (TypeError, ValueError):
        return None
    if month < 0 or month > 11 or year < 1 or year > 9999:
        return None
    return year, month + 1


def _parse_int_prefix(text):
    """Leading integer of a string ('1500abc' -> 1500), or None."""
    if text is None:
        return None
    text = text.strip()
    digits = ''
    for i, ch in enumerate(text):
        # ASCII only; str.isdigit() would also take other scripts' digits
        if ch in '0123456789' or (i == 0 and ch in '+-'):
            digits += ch
        else:
            break
    try:
        return int(digits)
    except ValueError:
        return None


def create_app(config=None, storage=None, ai_client=None):
    """
    Build the SpendSense Flask application.

    Args:
        config: Config instance (defaults to Config.from_env())
        storage: Storage backend (defaults to the one named by the config)
        ai_client: OpenAI-compatible client (defaults to a real OpenAI client)
    """
    config = config or Config.from_env()
    configure_logging(config.LOG_LEVEL)

    app = Flask(__name__, static_folder=None)
    app.config.update(config.flask_settings())
    app.json = CustomJSONProvider(app)

    # Enable CORS for the web interface (allows requests from different origins)
    CORS(app, supports_credentials=True)

    storage = storage or create_storage(config)
    tracker = FinanceTracker(storage)
    ai = InsightGenerator(
        ai_client or create_openai_client(config.OPENAI_API_KEY),
        model=config.OPENAI_MODEL,
        max_workers=config.AI_MAX_WORKERS,
    )
    session_ctrl = SessionController(app, tracker, secure_cookies=config.SESSION_COOKIE_SECURE)

    app.extensions['spendsense'] = {
        'config': config,
        'tracker': tracker,
        'ai': ai,
        'session': session_ctrl,
    }

    # --- ERROR HANDLERS ---

    @app.errorhandler(ValidationError)
    def handle_validation_error(err):
        return jsonify(message=err.errors), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        if request.path.startswith('/api/'):
            return jsonify(message=err.description), err.code
        return err

    # --- HTML SERVING ROUTES ---

    if config.STATIC_FOLDER:
        static_root = config.STATIC_FOLDER

        @app.route('/')
        def serve_index():
            return send_from_directory(static_root, 'index.html')

        @app.route('/<path:filename>')
        def serve_static(filename):
            return send_from_directory(static_root, filename)

    def _discard_demo_user():
        """Delete the demo user recorded in this session, if any."""
        demo_user_id = session.pop('demo_user_id', None)
        if demo_user_id is None:
            return
        try:
            tracker.delete_user(demo_user_id)
        except Exception:
            logger.exception("Error cleaning up demo user %s", demo_user_id)

    # --- AUTHENTICATION API ROUTES ---

    @app.route('/api/register', methods=['POST'])
    def register_user_api():
        username, password = parse_credentials(request.get_json(silent=True))
        success, message, user = tracker.register_user(username, password)
        if not success:
            return jsonify(message=message), 400
        session_ctrl.login(user)
        return jsonify(user.to_dict()), 201

    @app.route('/api/login', methods=['POST'])
    def login_user_api():
        data = _json_object()
        username = data.get('username')
        password = data.get('password')
        if not isinstance(username, str) or not isinstance(password, str) or not username or not password:
            return jsonify(message="Username and password are required."), 400

        success, message, user = tracker.login_user(username.strip(), password)
        if not success:
            return jsonify(message=message), 401
        session_ctrl.login(user)
        return jsonify(user.to_dict())

    @app.route('/api/logout', methods=['POST'])
    def logout_api():
        # A demo user's data does not outlive its session
        _discard_demo_user()
        session_ctrl.logout()
        return jsonify(message="You have been logged out.")

    @app.route('/api/user', methods=['GET'])
    @login_required
    def get_user_api():
        return jsonify(current_user.to_dict())

    @app.route('/api/change_password', methods=['POST'])
    @login_required
    def change_password_api():
        data = _json_object()
        success, message, _ = tracker.change_password(
            _current_user_id(),
            data.get('current_password'),
            data.get('new_password'),
        )
        return jsonify(message=message), 200 if success else 400

    @app.route('/api/demo_login', methods=['POST'])
    def demo_login_api():
        """
        Create a throwaway demo user with generated history and log it in.
        Each call gets a fresh, isolated user; the session's previous demo
        user is deleted first.
        """
        _discard_demo_user()

        username = f"demo_{uuid.uuid4().hex[:8]}"
        success, message, user = tracker.register_user(username, uuid.uuid4().hex)
        if not success:
            return jsonify(message="Failed to create demo user."), 500

        demo_info = generate_demo_transactions(tracker, user.id)
        logger.info("Created demo user %s with %s transactions", username, demo_info['transactions_created'])
        session_ctrl.login(user)
        session['demo_user_id'] = user.id
        return jsonify(user=user.to_dict(), demo_info=demo_info)

    # --- REFERENCE DATA ---

    @app.route('/api/categories', methods=['GET'])
    def get_categories_api():
        return jsonify([{'id': cid, 'name': name} for cid, name in CATEGORIES])

    # --- TRANSACTION ROUTES ---

    @app.route('/api/transactions', methods=['GET'])
    @login_required
    def get_transactions_api():
        return jsonify(tracker.get_transactions(_current_user_id()))

    @app.route('/api/transactions', methods=['POST'])
    @login_required
    def create_transaction_api():
        try:
            transaction = tracker.add_transaction(_current_user_id(), request.get_json(silent=True))
        except ValidationError:
            raise
        except Exception:
            logger.exception("Failed to create transaction for user %s", _current_user_id())
            return jsonify(message="Failed to create transaction"), 500
        return jsonify(transaction), 201

    @app.route('/api/transactions/month/<year>/<month>', methods=['GET'])
    @login_required
    def get_transactions_by_month_api(year, month):
        period = _parse_wire_month(year, month)
        if period is None:
            return jsonify(message="Invalid year or month"), 400
        try:
            return jsonify(tracker.get_transactions_by_month(_current_user_id(), *period))
        except Exception:
            logger.exception("Failed to fetch monthly transactions")
            return jsonify(message="Failed to fetch transactions"), 500

    # --- DASHBOARD & ANALYTICS ---

    @app.route('/api/dashboard', methods=['GET'])
    @login_required
    def get_dashboard_api():
        try:
            return jsonify(tracker.get_dashboard(_current_user_id()))
        except Exception:
            logger.exception("Failed to fetch dashboard data")
            return jsonify(message="Failed to fetch dashboard data"), 500

    @app.route('/api/analytics/categories', methods=['GET'])
    @login_required
    def get_category_breakdown_api():
        now = utc_now()
        period = _parse_wire_month(
            request.args.get('year', now.year),
            request.args.get('month', now.month - 1),
        )
        if period is None:
            return jsonify(message="Invalid year or month"), 400
        try:
            return jsonify(tracker.get_category_breakdown(_current_user_id(), *period))
        except Exception:
            logger.exception("Failed to build category breakdown")
            return jsonify(message="Failed to fetch category breakdown"), 500

    @app.route('/api/analytics/monthly', methods=['GET'])
    @login_required
    def get_monthly_summary_api():
        try:
            months = int(request.args.get('months', 6))
        except ValueError:
            months = None
        if months is None or months < 1 or months > 24:
            return jsonify(message="months must be between 1 and 24"), 400
        try:
            return jsonify(tracker.get_monthly_summary(_current_user_id(), months=months))
        except Exception:
            logger.exception("Failed to build monthly summary")
            return jsonify(message="Failed to fetch monthly summary"), 500

    @app.route('/api/insights', methods=['GET'])
    @login_required
    def get_insights_api():
        try:
            return jsonify(tracker.get_insights(_current_user_id()))
        except Exception:
            logger.exception("Failed to generate insights")
            return jsonify(message="Failed to generate insights"), 500

    # --- AI INSIGHT ROUTES ---

    @app.route('/api/ai-insights', methods=['GET'])
    @login_required
    def get_ai_insights_api():
        try:
            transactions = tracker.get_transactions(_current_user_id())
            if len(transactions) < MIN_TRANSACTIONS:
                return jsonify(message="Add more transactions to receive AI-powered financial insights")
            return jsonify(ai.generate_all(transactions))
        except Exception as e:
            logger.exception("Error generating AI insights")
            return jsonify(message="Failed to generate AI insights", error=str(e)), 500

    def _ai_route(generate, empty_message, failure_message):
        """Shared body of the single-insight AI routes."""
        try:
            transactions = tracker.get_transactions(_current_user_id())
            result = generate(transactions)
        except Exception:
            logger.exception(failure_message)
            return jsonify(message=failure_message), 500
        if result is None:
            return jsonify(message=empty_message)
        return jsonify(result)

    @app.route('/api/ai-insights/spending-forecast', methods=['GET'])
    @login_required
    def get_spending_forecast_api():
        return _ai_route(
            ai.spending_forecast,
            "Not enough transaction data to generate a spending forecast",
            "Failed to generate spending forecast",
        )

    @app.route('/api/ai-insights/budget-suggestions', methods=['GET'])
    @login_required
    def get_budget_suggestions_api():
        return _ai_route(
            ai.budget_suggestions,
            "Not enough transaction data to generate budget suggestions",
            "Failed to generate budget suggestions",
        )

    @app.route('/api/ai-insights/savings-goals', methods=['GET'])
    @login_required
    def get_savings_goals_api():
        target_amount = _parse_int_prefix(request.args.get('targetAmount'))
        return _ai_route(
            lambda transactions: ai.savings_goal(transactions, target_amount),
            "Not enough transaction data to generate a savings goal",
            "Failed to generate savings goal",
        )

    @app.route('/api/ai-insights/bill-reminders', methods=['GET'])
    @login_required
    def get_bill_reminders_api():
        return _ai_route(
            ai.bill_reminders,
            "Not enough transaction data to detect recurring bills",
            "Failed to generate bill reminders",
        )

    @app.route('/api/ai-insights/spending-patterns', methods=['GET'])
    @login_required
    def get_spending_patterns_api():
        return _ai_route(
            ai.spending_patterns,
            "Not enough transaction data to detect spending patterns",
            "Failed to detect spending patterns",
        )

    return app
