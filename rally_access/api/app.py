"""
Flask application factory and server entry-point.
"""

import os

from flask import Flask
from flask_cors import CORS

from rally_access.config import TOKEN_EXPIRY_HOURS
from rally_access.database import init_engine
from rally_access.api.routes import register_routes


def create_app(engine=None):
    """Build the API app around *engine*, connecting via DB_URI when none is given."""
    app = Flask(__name__)
    CORS(app)
    if engine is None:
        engine = init_engine()
    register_routes(app, engine)
    return app


def _endpoint_lines(app, base_url):
    for rule in sorted(app.url_map.iter_rules(), key=lambda r: r.rule):
        if rule.endpoint == "static":
            continue
        methods = ",".join(sorted(rule.methods - {"HEAD", "OPTIONS"}))
        yield f"  - {methods:<6} {base_url}{rule.rule}"


def main():
    """Run the development server."""
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    debug = os.getenv("FLASK_ENV") == "development"

    app = create_app()

    print(f"[server] Rally Access API on {host}:{port} (debug={debug}, "
          f"session expiry {TOKEN_EXPIRY_HOURS}h)")
    for line in _endpoint_lines(app, f"http://{host}:{port}"):
        print(line)

    app.run(host=host, port=port, debug=debug, threaded=True)


if __name__ == "__main__":
    main()
