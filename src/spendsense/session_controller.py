"""
SpendSense - Session Controller
Centralized session management using Flask-Login

This module provides:
- Session cookies hardened for the configured transport
- User loader for Flask-Login backed by the finance engine
- JSON 401 responses for unauthenticated API calls

Usage:
    session_ctrl = SessionController(app, tracker)

    @app.route('/api/protected')
    @login_required
    def protected_route():
        return jsonify(current_user.to_dict())
"""

import logging

from flask import jsonify, redirect, request, session
from flask_login import LoginManager, current_user, login_user, logout_user

logger = logging.getLogger(__name__)


class SessionController:
    """
    Manages user sessions and authentication for the Flask app.

    Args:
        app: Flask application instance
        tracker: FinanceTracker used to load users by id
        secure_cookies: send the session cookie over HTTPS only
    """

    def __init__(self, app, tracker, secure_cookies=False):
        self.app = app
        self.tracker = tracker
        self.login_manager = LoginManager()

        self._configure_session(secure_cookies)
        self._init_login_manager()

    def _configure_session(self, secure_cookies):
        """Configure session cookie security settings."""
        # Cross-site cookies need Secure; plain-HTTP development keeps Lax
        self.app.config['SESSION_COOKIE_HTTPONLY'] = True
        self.app.config['SESSION_COOKIE_SECURE'] = secure_cookies
        self.app.config['SESSION_COOKIE_SAMESITE'] = 'None' if secure_cookies else 'Lax'

    def _init_login_manager(self):
        """Initialize Flask-Login with user loader."""
        self.login_manager.init_app(self.app)

        @self.login_manager.user_loader
        def load_user(user_id):
            try:
                return self.tracker.get_user(int(user_id))
            except (TypeError, ValueError):
                return None

        @self.login_manager.unauthorized_handler
        def unauthorized():
            """Handle unauthorized access attempts."""
            if request.path.startswith('/api/'):
                return jsonify(message="Unauthorized"), 401
            return redirect('/')

    def login(self, user, remember=False):
        login_user(user, remember=remember)
        return True

    def logout(self):
        """Log out the current user and clear session."""
        if current_user.is_authenticated:
            logger.info("User %s logged out", current_user.username)
        logout_user()
        session.clear()
        return True

    def get_current_user(self):
        return current_user if current_user.is_authenticated else None
