"""
Gunicorn configuration. Threads let requests waiting on the embedding
model or the database run alongside each other.
"""

import os

bind = f"0.0.0.0:{os.environ.get('PORT', '5001')}"
workers = int(os.environ.get('GUNICORN_WORKERS', '2'))
threads = int(os.environ.get('GUNICORN_THREADS', '8'))
worker_class = 'gthread'
wsgi_app = 'config.wsgi:application'
accesslog = '-'
