"""
Gunicorn configuration for the Daybook API.

    gunicorn -c gunicorn.conf.py

Env vars:
  PORT             TCP port to bind (default: 8000)
  WEB_CONCURRENCY  worker processes (default: 2)
Narrator timeout and log level come from daybook's own settings (.env).
"""
import os

from daybook.core.config import settings

wsgi_app = "daybook.main:app"

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"
workers = int(os.environ.get("WEB_CONCURRENCY", "2"))
worker_class = "uvicorn.workers.UvicornWorker"

# A reflection request waits on the narrator; give it room before the worker is killed.
timeout = int(settings.NARRATOR_TIMEOUT_SECONDS) + 30
graceful_timeout = timeout
keepalive = 5

loglevel = settings.LOG_LEVEL.lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs user=%({x-user-id}i)s'
