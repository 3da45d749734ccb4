import pytest

from fakes import CountingFactory, FakeRetrieval


@pytest.fixture
def retrieval():
    return FakeRetrieval()


@pytest.fixture
def retrieval_factory(retrieval):
    return CountingFactory(retrieval)
