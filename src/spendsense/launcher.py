"""
SpendSense - Server Launcher

Starts the Flask API server and opens the browser automatically.

Usage:
    spendsense                 # memory storage, http://127.0.0.1:5000
    spendsense --no-browser
    spendsense --init-db       # create the sqlite schema and exit
"""

import argparse
import sys
import threading
import time
import webbrowser

from .config import Config
from .setup_sqlite import create_database


def open_browser(url, delay=1.5):
    """Open browser after a short delay"""
    time.sleep(delay)
    webbrowser.open(url)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run the SpendSense server.")
    parser.add_argument('--host', help="interface to bind (default from HOST or 127.0.0.1)")
    parser.add_argument('--port', type=int, help="port to bind (default from PORT or 5000)")
    parser.add_argument('--no-browser', action='store_true', help="do not open a browser window")
    parser.add_argument('--init-db', action='store_true', help="create the sqlite schema and exit")
    parser.add_argument('--debug', action='store_true', help="run Flask in debug mode")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    config = Config.from_env()

    if args.init_db:
        ok = create_database(config.DATABASE_PATH)
        print(f"Database {'ready' if ok else 'FAILED'}: {config.DATABASE_PATH}")
        return 0 if ok else 1

    host = args.host or config.HOST
    port = args.port or config.PORT
    url = f"http://{host}:{port}/"

    print("=" * 60)
    print(" SpendSense - Expense Tracker with AI Insights")
    print("=" * 60)
    print(f"\n  Storage: {config.STORAGE_BACKEND}")
    print(f"  Server:  {url}")
    print("\nPress Ctrl+C to stop the server")
    print("=" * 60)

    # Import here so configuration errors surface after the banner
    from .api import create_app
    app = create_app(config)

    if not args.no_browser and config.STATIC_FOLDER:
        threading.Thread(target=open_browser, args=(url,), daemon=True).start()

    try:
        app.run(host=host, port=port, debug=args.debug, use_reloader=False)
    except KeyboardInterrupt:
        print("\nServer stopped.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
