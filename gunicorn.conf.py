"""
Production Server Configuration

Run the API with Uvicorn workers under Gunicorn. Each worker keeps its own
in-memory sync status; the sync lock itself is shared through the database
or Redis.
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 10000
max_requests_jitter = 1000
# A full fetch against a cold remote cache can take minutes
timeout = 300
keepalive = 5
graceful_timeout = 30

# Process naming
proc_name = "reuse-analytics-api"

# Server mechanics
daemon = False
pidfile = os.getenv("PIDFILE", "/tmp/reuse-analytics.pid")

# Logging; the app replaces these handlers with structlog on startup
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")
accesslog = None
