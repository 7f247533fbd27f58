"""
pytest configuration for ShipDesk.
Sets Django settings and provides shared carrier fixtures.
"""

import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
import requests
from django.conf import settings

TEST_TOKEN    = "test-token"
TEST_BASE_URL = "https://carrier.test"


def pytest_configure(config):
    """Configure Django settings before tests run."""
    if not settings.configured:
        settings.configure(
            DATABASES={
                "default": {
                    "ENGINE": "django.db.backends.sqlite3",
                    "NAME":   ":memory:",
                }
            },
            INSTALLED_APPS=[
                "django.contrib.admin",
                "django.contrib.contenttypes",
                "django.contrib.auth",
                "django.contrib.sessions",
                "django.contrib.messages",
                "django.contrib.staticfiles",
                "rest_framework",
                "rest_framework_simplejwt",
                "drf_spectacular",
                "django_filters",
                "corsheaders",
                "apps.orders",
                "apps.warehouses",
                "apps.waybills",
                "apps.shipments",
            ],
            REST_FRAMEWORK={
                "DEFAULT_AUTHENTICATION_CLASSES": [
                    "rest_framework_simplejwt.authentication.JWTAuthentication",
                ],
                "DEFAULT_PERMISSION_CLASSES": [
                    "rest_framework.permissions.IsAdminUser",
                ],
                "DEFAULT_FILTER_BACKENDS": [
                    "django_filters.rest_framework.DjangoFilterBackend",
                ],
                "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
                "PAGE_SIZE": 50,
                "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
                "EXCEPTION_HANDLER": "apps.shipments.envelope.exception_handler",
            },
            SPECTACULAR_SETTINGS={
                "TITLE": "ShipDesk API",
                "VERSION": "1.0.0",
                "SERVE_INCLUDE_SCHEMA": False,
            },
            SECRET_KEY="test-secret-key-not-for-production",
            DEBUG=False,
            USE_TZ=True,
            TIME_ZONE="Asia/Kolkata",
            ROOT_URLCONF="shipdesk.urls",
            DEFAULT_AUTO_FIELD="django.db.models.BigAutoField",
            TEMPLATES=[{
                "BACKEND": "django.template.backends.django.DjangoTemplates",
                "DIRS": [],
                "APP_DIRS": True,
                "OPTIONS": {
                    "context_processors": [
                        "django.template.context_processors.debug",
                        "django.template.context_processors.request",
                        "django.contrib.auth.context_processors.auth",
                        "django.contrib.messages.context_processors.messages",
                    ],
                },
            }],
            MIDDLEWARE=[
                "django.middleware.security.SecurityMiddleware",
                "corsheaders.middleware.CorsMiddleware",
                "django.contrib.sessions.middleware.SessionMiddleware",
                "django.middleware.common.CommonMiddleware",
                "django.middleware.csrf.CsrfViewMiddleware",
                "django.contrib.auth.middleware.AuthenticationMiddleware",
                "django.contrib.messages.middleware.MessageMiddleware",
            ],
            STATIC_URL="/static/",
            STATIC_ROOT="/tmp/staticfiles_test",
            CACHES={
                "default": {
                    "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
                }
            },
            # Dummy carrier credentials (HTTP is always mocked in tests)
            DELHIVERY_API_TOKEN=TEST_TOKEN,
            DELHIVERY_BASE_URL=TEST_BASE_URL,
            DELHIVERY_TIMEOUT=5,
            WAYBILL_MIN_STOCK=5,
            WAYBILL_BATCH_DELAY_SECONDS=0,
            SHIPMENT_USE_WAYBILL_POOL=True,
            CELERY_TASK_ALWAYS_EAGER=True,   # Execute tasks synchronously in tests
            CELERY_TASK_EAGER_PROPAGATES=True,
            CORS_ALLOW_ALL_ORIGINS=True,
            SIMPLE_JWT={
                "ACCESS_TOKEN_LIFETIME": timedelta(hours=8),
                "REFRESH_TOKEN_LIFETIME": timedelta(days=7),
                "ALGORITHM": "HS256",
                "AUTH_HEADER_TYPES": ("Bearer",),
            },
        )


# ── Carrier HTTP doubles ──────────────────────────────────────────────────────

def make_response(status=200, body=None, text=None):
    """A real requests.Response carrying `body` as JSON (or raw `text`)."""
    resp = requests.Response()
    resp.status_code = status
    if text is None:
        text = json.dumps(body) if body is not None else ""
    resp._content = text.encode("utf-8")
    resp.encoding = "utf-8"
    resp.url      = TEST_BASE_URL
    return resp


class CarrierRoutes:
    """Answers mocked session calls by (method, path); unknown routes get a 404."""

    def __init__(self, session):
        self.routes = {}
        self.calls  = []
        session.request.side_effect = self._dispatch

    def on(self, method, path, body=None, status=200, text=None):
        self.routes[(method, path)] = make_response(status, body, text)
        return self

    def _dispatch(self, method, url, **kwargs):
        path = url[len(TEST_BASE_URL):]
        self.calls.append((method, path, kwargs))
        resp = self.routes.get((method, path))
        return resp if resp is not None else make_response(404, text="")

    def count(self, method, path):
        return sum(1 for m, p, _ in self.calls if (m, p) == (method, path))

    def last(self, method, path):
        for m, p, kwargs in reversed(self.calls):
            if (m, p) == (method, path):
                return kwargs
        return None


@pytest.fixture
def carrier_session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def carrier_api(carrier_session):
    return CarrierRoutes(carrier_session)


@pytest.fixture
def carrier(carrier_session):
    from apps.carriers.client import DelhiveryClient
    return DelhiveryClient(
        token=TEST_TOKEN, base_url=TEST_BASE_URL,
        session=carrier_session, timeout=5, batch_delay=0,
    )


@pytest.fixture
def unconfigured_carrier(carrier_session):
    from apps.carriers.client import DelhiveryClient
    return DelhiveryClient(token="", base_url=TEST_BASE_URL, session=carrier_session, batch_delay=0)
