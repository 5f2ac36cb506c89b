"""
Entrypoint for running the API in development.
In production, run create_app() under a WSGI server (gunicorn/uwsgi).
"""
import os
from . import create_app, dispose_app

app = create_app()

if __name__ == "__main__":
    host = os.getenv("FLASK_RUN_HOST", "0.0.0.0")
    port = int(os.getenv("FLASK_RUN_PORT", os.getenv("PORT", "5000")))
    debug = os.getenv("FLASK_DEBUG", str(app.config.get("DEBUG", True))).lower() in ("1", "true", "yes")
    try:
        app.run(host=host, port=port, debug=debug)
    finally:
        # Shut down the connection pool with the server
        dispose_app(app)
