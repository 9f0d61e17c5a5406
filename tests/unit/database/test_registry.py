import pytest

from fixedpool.database import registry
from fixedpool.database.exceptions import InitializationError
from tests._fixtures import FactoryFake
from tests._fixtures.fixtures import TEST_URL


@pytest.fixture(autouse=True)
def clean_registry():
    registry.close_all_pools()
    yield
    registry.close_all_pools()


@pytest.mark.unit
def test_init_pool_is_idempotent_per_name():
    factory = FactoryFake()
    p1 = registry.init_pool(factory, 2, TEST_URL)
    p2 = registry.init_pool(factory, 5, TEST_URL)
    assert p1 is p2, "init_pool should return the registered pool for the same name"
    assert p1.capacity == 2
    assert factory.calls == 2
    assert registry.get_pool() is p1


@pytest.mark.unit
def test_named_pools_are_independent():
    reports = registry.init_pool(FactoryFake(), 1, TEST_URL, name="reports")
    main = registry.init_pool(FactoryFake(), 2, TEST_URL, name="main")
    assert reports is not main
    assert registry.registered_pools() == ["main", "reports"]


@pytest.mark.unit
def test_get_pool_unknown_name_raises():
    with pytest.raises(KeyError, match="missing"):
        registry.get_pool("missing")


@pytest.mark.unit
def test_failed_init_registers_nothing():
    with pytest.raises(InitializationError):
        registry.init_pool(FactoryFake(fail_after=0), 2, TEST_URL, name="broken")
    assert "broken" not in registry.registered_pools()


@pytest.mark.unit
def test_close_pool_closes_and_unregisters():
    factory = FactoryFake()
    pool = registry.init_pool(factory, 2, TEST_URL)
    registry.close_pool()
    assert pool.closed
    assert all(c.closed for c in factory.created)
    assert registry.registered_pools() == []
    # closing an unknown name is a no-op
    registry.close_pool("never-registered")
