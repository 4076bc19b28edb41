"""
Relational type codes.

Codes follow the JDBC ``java.sql.Types`` numbering, which most database
drivers and metadata endpoints already speak. Only the members listed in
``SUPPORTED_TYPES`` have a columnar codec; the others exist so that driver
type codes can be identified (and rejected) precisely.
"""
import re
from enum import IntEnum

__all__ = [
    'SqlType',
    'SUPPORTED_TYPES',
    'parse_type_name',
    'type_from_name',
]


class SqlType(IntEnum):
    """Relational type code as reported in row-set metadata."""
    BIT = -7
    TINYINT = -6
    SMALLINT = 5
    INTEGER = 4
    BIGINT = -5
    FLOAT = 6
    REAL = 7
    DOUBLE = 8
    NUMERIC = 2
    DECIMAL = 3
    CHAR = 1
    VARCHAR = 12
    LONGVARCHAR = -1
    NCHAR = -15
    NVARCHAR = -9
    LONGNVARCHAR = -16
    CLOB = 2005
    NCLOB = 2011
    DATE = 91
    TIME = 92
    TIMESTAMP = 93
    TIME_WITH_TIMEZONE = 2013
    TIMESTAMP_WITH_TIMEZONE = 2014
    BINARY = -2
    VARBINARY = -3
    LONGVARBINARY = -4
    BLOB = 2004
    BOOLEAN = 16
    NULL = 0
    OTHER = 1111
    JAVA_OBJECT = 2000
    DISTINCT = 2001
    STRUCT = 2002
    ARRAY = 2003
    REF = 2006
    DATALINK = 70
    ROWID = -8
    SQLXML = 2009
    REF_CURSOR = 2012


SUPPORTED_TYPES = frozenset({
    SqlType.CHAR, SqlType.NCHAR, SqlType.VARCHAR, SqlType.NVARCHAR,
    SqlType.LONGVARCHAR, SqlType.LONGNVARCHAR, SqlType.CLOB,
    SqlType.NUMERIC, SqlType.DECIMAL,
    SqlType.BIT,
    SqlType.TINYINT, SqlType.SMALLINT, SqlType.INTEGER, SqlType.BIGINT,
    SqlType.REAL, SqlType.FLOAT, SqlType.DOUBLE,
    SqlType.BINARY, SqlType.VARBINARY, SqlType.LONGVARBINARY, SqlType.BLOB,
    SqlType.DATE, SqlType.TIME, SqlType.TIMESTAMP,
    })

# Type names as spelled by common engines. Aliases resolve to the code a
# JDBC driver would report for the same declaration.
_TYPE_NAMES = {
    'char': SqlType.CHAR,
    'character': SqlType.CHAR,
    'bpchar': SqlType.CHAR,
    'nchar': SqlType.NCHAR,
    'varchar': SqlType.VARCHAR,
    'character varying': SqlType.VARCHAR,
    'nvarchar': SqlType.NVARCHAR,
    'longvarchar': SqlType.LONGVARCHAR,
    'longnvarchar': SqlType.LONGNVARCHAR,
    'text': SqlType.VARCHAR,
    'string': SqlType.VARCHAR,
    'clob': SqlType.CLOB,
    'nclob': SqlType.NCLOB,
    'numeric': SqlType.NUMERIC,
    'decimal': SqlType.DECIMAL,
    'bit': SqlType.BIT,
    'bool': SqlType.BIT,
    'boolean': SqlType.BIT,
    'tinyint': SqlType.TINYINT,
    'smallint': SqlType.SMALLINT,
    'int2': SqlType.SMALLINT,
    'int': SqlType.INTEGER,
    'integer': SqlType.INTEGER,
    'int4': SqlType.INTEGER,
    'bigint': SqlType.BIGINT,
    'int8': SqlType.BIGINT,
    'real': SqlType.REAL,
    'float4': SqlType.REAL,
    'float': SqlType.FLOAT,
    'double': SqlType.DOUBLE,
    'double precision': SqlType.DOUBLE,
    'float8': SqlType.DOUBLE,
    'binary': SqlType.BINARY,
    'varbinary': SqlType.VARBINARY,
    'longvarbinary': SqlType.LONGVARBINARY,
    'bytea': SqlType.BINARY,
    'blob': SqlType.BLOB,
    'date': SqlType.DATE,
    'time': SqlType.TIME,
    'time without time zone': SqlType.TIME,
    'timestamp': SqlType.TIMESTAMP,
    'timestamp without time zone': SqlType.TIMESTAMP,
    'datetime': SqlType.TIMESTAMP,
    'timetz': SqlType.TIME,
    'time with time zone': SqlType.TIME,
    'timestamptz': SqlType.TIMESTAMP,
    'timestamp with time zone': SqlType.TIMESTAMP,
    'null': SqlType.NULL,
    'array': SqlType.ARRAY,
    'other': SqlType.OTHER,
    }

_TYPE_NAME_RE = re.compile(
    r'^\s*(?P<name>[a-z][a-z0-9_ ]*?)\s*'
    r'(?:\(\s*(?P<precision>-?\d+)\s*(?:,\s*(?P<scale>-?\d+)\s*)?\))?\s*$',
    re.IGNORECASE)


def parse_type_name(declaration: str) -> tuple[str, int | None, int | None]:
    """Split a declared type such as ``'DECIMAL(10, 2)'`` into its parts.

    Returns
        Tuple of (lowercase base name, precision or None, scale or None).
        A declaration that does not parse is returned whole, lowercased.
    """
    match = _TYPE_NAME_RE.match(declaration)
    if match is None:
        return declaration.strip().lower(), None, None
    precision = match.group('precision')
    scale = match.group('scale')
    return (
        ' '.join(match.group('name').lower().split()),
        int(precision) if precision is not None else None,
        int(scale) if scale is not None else None,
        )


def type_from_name(name: str) -> SqlType | None:
    """Resolve a type name (without precision suffix) to a relational type code."""
    return _TYPE_NAMES.get(' '.join(name.lower().split()))
