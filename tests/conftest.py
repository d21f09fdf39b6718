import pytest

from gymmatch.models import Org, SourceGym
from gymmatch.registry import MasterGymRegistry
from gymmatch.review import ReviewService
from gymmatch.store import InMemoryGymStore


def make_gym(org=Org.JJWL, external_id="1", name="Pablo Silva BJJ", **kwargs) -> SourceGym:
    return SourceGym(org=org, external_id=external_id, name=name, **kwargs)


@pytest.fixture
def store():
    return InMemoryGymStore()


@pytest.fixture
def registry(store):
    return MasterGymRegistry(store)


@pytest.fixture
def review(registry):
    return ReviewService(registry)
