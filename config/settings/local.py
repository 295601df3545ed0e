from .base import *  # noqa: F403
from .base import LOGGING
from .base import env

# GENERAL
# ------------------------------------------------------------------------------
# https://docs.djangoproject.com/en/dev/ref/settings/#debug
DEBUG = True
# https://docs.djangoproject.com/en/dev/ref/settings/#secret-key
SECRET_KEY = env(
    "DJANGO_SECRET_KEY",
    default="vbsbDBl2IGNH3x6Tz9kOfcs2ZYt4BT8QhCuKsWWsHgKn4HNnS4ZBgqKF3Pn3wHwF",
)
# https://docs.djangoproject.com/en/dev/ref/settings/#allowed-hosts
ALLOWED_HOSTS = ["localhost", "0.0.0.0", "127.0.0.1"]  # noqa: S104

# LOGGING
# ------------------------------------------------------------------------------
LOGGING["loggers"] = {
    "chat_sync": {"level": "DEBUG", "handlers": ["console"], "propagate": False},
}

# Your stuff...
# ------------------------------------------------------------------------------
