"""
Gunicorn configuration for the OrderProxy ASGI app.
Workers are Uvicorn workers; the response cache is per process.
"""

import multiprocessing
import os

# Server socket
bind = f"{os.getenv('HOST', '0.0.0.0')}:{os.getenv('PORT', '3001')}"
backlog = 1024

# Each worker keeps its own in-memory cache and rate-limit window
if os.getenv("IS_LOCAL_DEPLOYMENT", "False").lower() == "true":
    workers = 1
else:
    workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() + 1))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 2000
max_requests_jitter = 100
timeout = 60
graceful_timeout = 30
keepalive = 5

proc_name = "orderproxy"

# Logging
accesslog = os.getenv("ACCESS_LOG", "-")
errorlog = os.getenv("ERROR_LOG", "-")
loglevel = os.getenv("LOG_LEVEL", "info").lower()
capture_output = True

daemon = False
pidfile = None


def when_ready(server):
    """Called just after the master process is initialized."""
    server.log.info("Server is ready. Spawning workers")


def post_fork(server, worker):
    server.log.info(f"Worker spawned (pid: {worker.pid})")


def worker_int(worker):
    worker.log.info(f"Worker {worker.pid} received INT or QUIT signal")


def on_exit(server):
    server.log.info("Shutting down Gunicorn server")
