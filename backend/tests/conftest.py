from __future__ import annotations

# ruff: noqa: E402

import os
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.test")
os.environ.update(
    {
        "DJANGO_SECRET_KEY": "test-secret-key",
        "CELERY_BROKER_URL": "memory://",
        "CELERY_RESULT_BACKEND": "cache+memory://",
        "API_VERSION": "test-version",
    }
)

import django

django.setup()

import pytest
from rest_framework.test import APIClient

from accounts.models import Client, User
from core.metrics import reset_metrics


def _make_user(username: str, *, client=None, role=User.CS, **extra) -> User:
    user = User.objects.create_user(
        username=username,
        email=username,
        client=client,
        role=role,
        **extra,
    )
    user.set_password("password123")
    user.save()
    return user


@pytest.fixture
def tenant(db) -> Client:
    return Client.objects.create(name="Acme Clinic")


@pytest.fixture
def other_tenant(db) -> Client:
    return Client.objects.create(name="Globex Skincare")


@pytest.fixture
def user(tenant) -> User:
    return _make_user("admin@acme.test", client=tenant, role=User.CLIENT_ADMIN)


@pytest.fixture
def cs_user(tenant) -> User:
    return _make_user("cs@acme.test", client=tenant, role=User.CS)


@pytest.fixture
def other_user(other_tenant) -> User:
    return _make_user("admin@globex.test", client=other_tenant, role=User.CLIENT_ADMIN)


@pytest.fixture
def super_admin(db) -> User:
    return _make_user("root@platform.test", role=User.SUPER_ADMIN, is_staff=True)


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def auth_client(api_client, user) -> APIClient:
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def cs_client(cs_user) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=cs_user)
    return client


@pytest.fixture
def super_client(super_admin) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=super_admin)
    return client


@pytest.fixture(autouse=True)
def reset_prometheus_metrics():
    reset_metrics()
    yield
    reset_metrics()
