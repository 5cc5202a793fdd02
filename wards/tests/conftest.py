import pytest

from wards.repositories import MemoryRepository
from wards.services.gateway import AllocationGateway
from wards.services.locks import KeyedLock

from .helpers import Clock


@pytest.fixture
def repo():
    return MemoryRepository()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def gateway(repo, clock):
    return AllocationGateway(repo, KeyedLock(timeout=2), clock=clock)


@pytest.fixture(autouse=True)
def _plain_static_storage(settings):
    settings.STORAGES = {
        **settings.STORAGES,
        'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
    }
