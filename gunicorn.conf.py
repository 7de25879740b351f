"""Gunicorn production configuration for the masters API."""
import multiprocessing
import os

wsgi_app = "masters.main:app"
chdir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "backend")

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.getenv("GUNICORN_WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
# Inline imports of up to IMPORT_INLINE_MAX_ROWS rows run inside the request.
timeout = int(os.getenv("GUNICORN_TIMEOUT", "300"))
keepalive = 5
max_requests = 1000
max_requests_jitter = 100
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
