import multiprocessing
import os

# Run with: gunicorn -c deploy/gunicorn.conf.py mosque_edu.main:app
bind = os.getenv("MOSQUE_EDU_BIND", "127.0.0.1:8000")
workers = int(os.getenv("MOSQUE_EDU_WORKERS", (multiprocessing.cpu_count() * 2) + 1))
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 60
graceful_timeout = 30
keepalive = 5
loglevel = "info"
accesslog = "-"
errorlog = "-"
