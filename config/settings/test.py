"""
With these settings, tests run faster.
"""

from .base import *  # noqa: F403
from .base import TEMPLATES
from .base import env

# GENERAL
# ------------------------------------------------------------------------------
# https://docs.djangoproject.com/en/dev/ref/settings/#secret-key
SECRET_KEY = env(
    "DJANGO_SECRET_KEY",
    default="AlGzerkUv160WCFbKM8vn2qyFYWS5jX0AHND8TnRj55iqlMSPtJsUllwpba1oqOO",
)
# https://docs.djangoproject.com/en/dev/ref/settings/#test-runner
TEST_RUNNER = "django.test.runner.DiscoverRunner"
# https://docs.djangoproject.com/en/dev/ref/settings/#allowed-hosts
ALLOWED_HOSTS = ["testserver", "localhost"]

# DEBUGGING FOR TEMPLATES
# ------------------------------------------------------------------------------
TEMPLATES[0]["OPTIONS"]["debug"] = True  # type: ignore[index]

# Chat
# ------------------------------------------------------------------------------
# Tests drive typing timers with a manual scheduler; keep the default explicit.
CHAT_TYPING_TIMEOUT = 5.0
CHAT_SEED_CONVERSATIONS = False
