import multiprocessing
import os

# WEB_CONCURRENCY overrides the core-based default
wsgi_app = "otp_access:create_app()"
workers = int(os.environ.get('WEB_CONCURRENCY', (multiprocessing.cpu_count() * 2) + 1))
threads = int(os.environ.get('GUNICORN_THREADS', 4))
worker_class = "gthread"
preload_app = True
bind = os.environ.get('BIND', ':8000')
# Render/Heroku terminate TLS in front of us
forwarded_allow_ips = "*"
# Redemptions are short; anything slower is a stuck store
timeout = 30
graceful_timeout = 20
keepalive = 75
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get('LOG_LEVEL', 'info').lower()
