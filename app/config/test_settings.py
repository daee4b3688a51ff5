"""
Settings for the test suite.

Fills in the environment the main settings module requires, pointing every
backing service at an in-process replacement, then loads config.settings.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DEBUG", "False")
os.environ.setdefault("ALLOWED_HOSTS", "testserver,localhost")
os.environ.setdefault("DATABASE_URL", "sqlite://:memory:")
os.environ.setdefault("CACHE_URL", "locmemcache://")
os.environ.setdefault("CHANNEL_LAYER_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("SECURE_SSL_REDIRECT", "False")
# Keep the presence grace window and store retries short
os.environ.setdefault("CHAT_PRESENCE_GRACE_SECONDS", "0")
os.environ.setdefault("CHAT_STORE_RETRY_BACKOFF_SECONDS", "0")
os.environ.setdefault("CHAT_ASSISTANT_PROVIDER", "")

from config.settings import *  # noqa: E402,F401,F403

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}

# Let caplog see chat records
LOGGING["loggers"]["chat"]["propagate"] = True  # noqa: F405
