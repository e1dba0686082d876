"""
Development settings for story-search project.
"""

from .base import *  # noqa: F401, F403

DEBUG = True

ALLOWED_HOSTS = ['*']

# ---------------------------------------------------------------------------
# Database: SQLite for local development
# ---------------------------------------------------------------------------

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',  # noqa: F405
    }
}

# ---------------------------------------------------------------------------
# Debug toolbar
# ---------------------------------------------------------------------------

INSTALLED_APPS += ['debug_toolbar']  # noqa: F405

MIDDLEWARE.insert(0, 'debug_toolbar.middleware.DebugToolbarMiddleware')  # noqa: F405

INTERNAL_IPS = ['127.0.0.1']

# Browsable API while developing
REST_FRAMEWORK['DEFAULT_RENDERER_CLASSES'] = [  # noqa: F405
    'rest_framework.renderers.JSONRenderer',
    'rest_framework.renderers.BrowsableAPIRenderer',
]

# ---------------------------------------------------------------------------
# Static files: no manifest needed with runserver
# ---------------------------------------------------------------------------

STORAGES['staticfiles'] = {  # noqa: F405
    'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
}

# ---------------------------------------------------------------------------
# Logging: app loggers at DEBUG
# ---------------------------------------------------------------------------

LOGGING['loggers']['apps']['level'] = 'DEBUG'  # noqa: F405

# ---------------------------------------------------------------------------
# Celery: run tasks synchronously in development (no worker needed)
# ---------------------------------------------------------------------------

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

# ---------------------------------------------------------------------------
# Embeddings: use local Ollama in development (free, no API key needed)
# Run: ollama pull nomic-embed-text
# ---------------------------------------------------------------------------

EMBEDDING_PROVIDER = 'ollama'
OLLAMA_BASE_URL = 'http://localhost:11434'
OLLAMA_EMBEDDING_MODEL = 'nomic-embed-text'
EMBEDDING_DIMENSIONS = 768  # nomic-embed-text outputs 768-dim vectors

# SQLite has no pgvector; keep vectors in process memory.
VECTOR_INDEX_BACKEND = 'memory'
