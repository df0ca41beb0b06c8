"""
Gunicorn configuration for the Memoir API server.

    gunicorn -c gunicorn.conf.py

Env vars that override defaults:
  PORT     — TCP port to bind (default: 8000)
  WORKERS  — number of worker processes (default: 2)
"""
import os

wsgi_app = "app.main:app"

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# Share access is one short transaction per request; 2 workers fit a 512 MB container.
workers = int(os.environ.get("WORKERS", "2"))

# Each worker runs Uvicorn's ASGI event loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# Kill a worker that hasn't responded in 120 s (prevents zombie workers).
timeout = 120

# stdout only; application logs share the same stream (see app/core/logging.py).
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

# Graceful restart: wait up to 30 s for in-flight requests to finish.
graceful_timeout = 30
