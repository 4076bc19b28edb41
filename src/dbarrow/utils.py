"""Low-level connection and cursor utilities with no internal dependencies.

These utilities work with raw DBAPI connections and cursors as well as the
common wrapper shapes around them (SQLAlchemy connections, pool proxies,
client wrappers exposing ``driver_connection`` or ``dbapi_connection``).
"""
import logging
from typing import Any

logger = logging.getLogger(__name__)

GENERIC_DIALECT = 'generic'
SUPPORTED_DIALECTS = ('postgresql', 'sqlite', GENERIC_DIALECT)


def get_dialect_name(obj: Any) -> str:
    """Get dialect name for a database connection or cursor.

    Returns ``'postgresql'`` for psycopg objects, ``'sqlite'`` for sqlite3
    objects and ``'generic'`` for anything else, whose cursor description is
    expected to carry relational type codes or type names. A dialect named
    by a wrapper that is not one of these (e.g. SQLAlchemy's 'mssql') is
    reported as 'generic'.
    """
    if hasattr(obj, 'dialect'):
        dialect = obj.dialect
        if isinstance(dialect, str):
            return _known_dialect(dialect)
        return _known_dialect(str(dialect.name))

    if hasattr(obj, 'engine') and hasattr(obj.engine, 'dialect'):
        return _known_dialect(str(obj.engine.dialect.name))

    if hasattr(obj, 'dbapi_connection'):
        return get_dialect_name(obj.dbapi_connection)

    if hasattr(obj, 'driver_connection'):
        return get_dialect_name(obj.driver_connection)

    type_name = f'{type(obj).__module__}.{type(obj).__name__}'
    if 'psycopg' in type_name:
        return 'postgresql'
    if 'sqlite3' in type_name:
        return 'sqlite'

    return GENERIC_DIALECT


def _known_dialect(name: str) -> str:
    dialect = name.lower()
    if dialect not in SUPPORTED_DIALECTS:
        logger.debug(f'Dialect {dialect!r} has no type mapping, using {GENERIC_DIALECT!r}')
        return GENERIC_DIALECT
    return dialect


def get_raw_connection(connection: Any) -> Any:
    """Extract the raw DBAPI connection from a wrapper."""
    raw_conn = connection
    if hasattr(connection, 'driver_connection'):
        raw_conn = connection.driver_connection
    elif hasattr(connection, 'dbapi_connection'):
        raw_conn = connection.dbapi_connection
    elif hasattr(getattr(connection, 'connection', None), 'driver_connection'):
        # SQLAlchemy Connection -> pool proxy -> driver connection
        raw_conn = connection.connection.driver_connection
    return raw_conn
