import pytest

from tests.portal import FakePortal, make_session


@pytest.fixture
def portal() -> FakePortal:
    return FakePortal()


@pytest.fixture
def session(portal):
    return make_session(portal)
