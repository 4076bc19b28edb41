import pytest
from dbarrow.config.type_mapping import TypeMappingConfig


@pytest.fixture(autouse=True)
def clear_type_mapping():
    """Start and end every test with an empty type mapping configuration."""
    TypeMappingConfig.reset_instance()
    TypeMappingConfig.get_instance()._mappings.clear()
    yield
    TypeMappingConfig.reset_instance()


pytest_plugins = [
    'tests.fixtures.cursors',
    'tests.fixtures.sqlite',
]
