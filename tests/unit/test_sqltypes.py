"""
Tests for relational type codes and type name parsing.
"""
import pytest
from dbarrow.sqltypes import SqlType, parse_type_name, type_from_name


@pytest.mark.parametrize(('declaration', 'expected'), [
    ('DECIMAL(10, 2)', ('decimal', 10, 2)),
    ('numeric(5,-2)', ('numeric', 5, -2)),
    ('varchar(255)', ('varchar', 255, None)),
    ('INTEGER', ('integer', None, None)),
    ('double   precision', ('double precision', None, None)),
    ('TIMESTAMP WITH TIME ZONE', ('timestamp with time zone', None, None)),
    (' Text ', ('text', None, None)),
])
def test_parse_type_name(declaration, expected):
    """Test declarations split into name, precision and scale"""
    assert parse_type_name(declaration) == expected


def test_parse_unparseable_declaration():
    """Test declarations that do not parse are returned whole"""
    assert parse_type_name('int[]') == ('int[]', None, None)


@pytest.mark.parametrize(('name', 'sql_type'), [
    ('text', SqlType.VARCHAR),
    ('Character Varying', SqlType.VARCHAR),
    ('bpchar', SqlType.CHAR),
    ('boolean', SqlType.BIT),
    ('int', SqlType.INTEGER),
    ('int8', SqlType.BIGINT),
    ('float', SqlType.FLOAT),
    ('float8', SqlType.DOUBLE),
    ('bytea', SqlType.BINARY),
    ('datetime', SqlType.TIMESTAMP),
    ('timestamptz', SqlType.TIMESTAMP),
    ('timetz', SqlType.TIME),
    ('decimal', SqlType.DECIMAL),
])
def test_type_from_name(name, sql_type):
    """Test engine type names resolve to the JDBC type code"""
    assert type_from_name(name) is sql_type


def test_type_from_unknown_name():
    """Test unknown names do not resolve"""
    assert type_from_name('json') is None
    assert type_from_name('geometry') is None


def test_jdbc_codes():
    """Test codes match java.sql.Types"""
    assert SqlType(-5) is SqlType.BIGINT
    assert SqlType(12) is SqlType.VARCHAR
    assert SqlType(93) is SqlType.TIMESTAMP
    assert SqlType.DECIMAL == 3


if __name__ == '__main__':
    __import__('pytest').main([__file__])
