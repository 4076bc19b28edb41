"""
Tests for type mapping configuration and type resolution.
"""
import json

from dbarrow.adapters.type_mapping import ResolvedType, TypeResolver, resolve_type
from dbarrow.config.type_mapping import TypeMappingConfig
from dbarrow.sqltypes import SqlType


def test_type_mapping_config():
    """Test TypeMappingConfig for column type overrides"""
    config = TypeMappingConfig.get_instance()

    # No defaults, overrides only come from config files or explicit mappings
    assert config.get_type_for_column('sqlite', None, 'unknown_column') is None

    config.add_column_mapping('sqlite', 'orders', 'Total', 'decimal(12,2)')
    assert config.get_type_for_column('sqlite', 'orders', 'total') == 'decimal(12,2)'
    assert config.get_type_for_column('sqlite', 'ORDERS', 'TOTAL') == 'decimal(12,2)'
    assert config.get_type_for_column('sqlite', 'other_table', 'total') is None
    assert config.get_type_for_column('postgresql', 'orders', 'total') is None

    config.add_column_mapping('sqlite', None, 'created', 'timestamp')
    assert config.get_type_for_column('sqlite', None, 'created') == 'timestamp'
    assert config.get_type_for_column('sqlite', 'any_table', 'created') == 'timestamp'


def test_pattern_mapping():
    """Test regex patterns are matched after exact names"""
    config = TypeMappingConfig.get_instance()
    config.add_pattern_mapping('sqlite', r'_id$', 'bigint')
    config.add_column_mapping('sqlite', None, 'legacy_id', 'varchar')

    assert config.get_type_for_column('sqlite', None, 'customer_id') == 'bigint'
    assert config.get_type_for_column('sqlite', None, 'legacy_id') == 'varchar'
    assert config.get_type_for_column('sqlite', None, 'identity') is None


def test_load_config_file(tmp_path):
    """Test loading overrides from a JSON file"""
    path = tmp_path / 'type_mapping.json'
    path.write_text(json.dumps({
        'sqlite': {
            'columns': {'Orders.Amount': 'numeric(10,2)'},
            'patterns': {'_at$': 'timestamp'},
        },
    }))

    config = TypeMappingConfig(config_file=path)
    assert config.get_type_for_column('sqlite', 'orders', 'amount') == 'numeric(10,2)'
    assert config.get_type_for_column('sqlite', None, 'created_at') == 'timestamp'


def test_load_bad_config_file(tmp_path, caplog):
    """Test an unreadable file is logged and ignored"""
    path = tmp_path / 'type_mapping.json'
    path.write_text('{not json')

    with caplog.at_level('WARNING', logger='dbarrow.config.type_mapping'):
        config = TypeMappingConfig(config_file=path)

    assert 'Failed to load type mapping config' in caplog.text
    assert config.get_type_for_column('sqlite', None, 'anything') is None


def test_postgres_oids():
    """Test PostgreSQL OIDs resolve to relational type codes"""
    resolver = TypeResolver()
    expected = {
        16: SqlType.BIT,
        17: SqlType.BINARY,
        20: SqlType.BIGINT,
        21: SqlType.SMALLINT,
        23: SqlType.INTEGER,
        25: SqlType.VARCHAR,
        700: SqlType.REAL,
        701: SqlType.DOUBLE,
        1042: SqlType.CHAR,
        1043: SqlType.VARCHAR,
        1082: SqlType.DATE,
        1083: SqlType.TIME,
        1114: SqlType.TIMESTAMP,
        1184: SqlType.TIMESTAMP,
        1700: SqlType.NUMERIC,
        114: SqlType.OTHER,
        2950: SqlType.OTHER,
        1007: SqlType.ARRAY,
        99999: SqlType.OTHER,
        }
    for oid, sql_type in expected.items():
        assert resolver.resolve_type_code('postgresql', oid).sql_type is sql_type, oid


def test_generic_type_codes():
    """Test generic drivers may report SqlType members, JDBC codes or names"""
    resolver = TypeResolver()
    assert resolver.resolve_type_code('generic', SqlType.DATE) == ResolvedType(SqlType.DATE)
    assert resolver.resolve_type_code('generic', -5) == ResolvedType(SqlType.BIGINT)
    assert resolver.resolve_type_code('generic', 424242) == ResolvedType(None)
    assert resolver.resolve_type_code('generic', None) == ResolvedType(None)
    assert resolver.resolve_type_code('generic', 1.5) == ResolvedType(None)

    resolved = resolver.resolve_type_code('generic', 'DECIMAL(10,2)')
    assert resolved.sql_type is SqlType.DECIMAL
    assert (resolved.precision, resolved.scale) == (10, 2)


def test_sqlite_without_type():
    """Test sqlite columns without overrides stay unresolved"""
    assert resolve_type('sqlite', None, 'id').sql_type is None


def test_override_priority():
    """Test option overrides win over configuration, which wins over the driver"""
    config = TypeMappingConfig.get_instance()
    config.add_column_mapping('postgresql', None, 'payload', 'varchar')

    resolved = resolve_type('postgresql', 114, 'payload')
    assert resolved.sql_type is SqlType.VARCHAR
    assert resolved.source == 'config'

    resolved = resolve_type('postgresql', 114, 'PayLoad', overrides={'payload': 'blob'})
    assert resolved.sql_type is SqlType.BLOB
    assert resolved.source == 'option'

    resolved = resolve_type('postgresql', 114, 'other')
    assert resolved.sql_type is SqlType.OTHER
    assert resolved.source == 'driver'


def test_resolver_with_explicit_config():
    """Test a resolver can be bound to its own configuration"""
    config = TypeMappingConfig(config_file=None)
    config._mappings.clear()
    config.add_column_mapping('generic', 'orders', 'amount', 'numeric(8,3)')

    resolver = TypeResolver(config)
    resolved = resolver.resolve('generic', 'VARCHAR', 'amount', table_name='orders')
    assert resolved == ResolvedType(SqlType.NUMERIC, 8, 3, 'config')

    assert resolve_type('generic', 'VARCHAR', 'amount', table_name='orders').sql_type is SqlType.VARCHAR


if __name__ == '__main__':
    __import__('pytest').main([__file__])
