"""
Type resolution for result columns.

This module resolves the type code a driver reports for a result column to
a relational type code (`SqlType`). It combines information from several
sources, in priority order:

1. Per-call overrides (`ConversionOptions.column_types`)
2. Configuration-based overrides (`TypeMappingConfig`)
3. The driver type code itself:
   - PostgreSQL OIDs (psycopg type registry)
   - `SqlType` members and JDBC integer codes
   - type names such as ``'VARCHAR'`` or ``'DECIMAL(10,2)'``

The module focuses solely on type identification, not conversion.
"""
import logging
from dataclasses import dataclass
from typing import Any

from dbarrow.config.type_mapping import TypeMappingConfig
from dbarrow.sqltypes import SqlType, parse_type_name, type_from_name
from psycopg.postgres import types

__all__ = [
    'ResolvedType',
    'TypeResolver',
    'postgres_types',
    'resolve_type',
]

logger = logging.getLogger(__name__)

oid = lambda x: types.get(x).oid
aoid = lambda x: types.get(x).array_oid

# Codes follow what the PostgreSQL JDBC driver reports for each type.
postgres_types: dict[int, SqlType] = {}
for v in [
    oid('"char"'),
    oid('bpchar'),
    oid('character'),
]:
    postgres_types[v] = SqlType.CHAR
for v in [
    oid('character varying'),
    oid('varchar'),
    oid('text'),
    oid('name'),
]:
    postgres_types[v] = SqlType.VARCHAR
for v in [oid('int2')]:
    postgres_types[v] = SqlType.SMALLINT
for v in [oid('int4'), oid('integer')]:
    postgres_types[v] = SqlType.INTEGER
for v in [oid('int8'), oid('bigint'), oid('oid')]:
    postgres_types[v] = SqlType.BIGINT
for v in [oid('float4')]:
    postgres_types[v] = SqlType.REAL
for v in [oid('float8'), oid('double precision')]:
    postgres_types[v] = SqlType.DOUBLE
for v in [oid('numeric')]:
    postgres_types[v] = SqlType.NUMERIC
for v in [oid('bool'), oid('boolean')]:
    postgres_types[v] = SqlType.BIT
for v in [oid('bytea')]:
    postgres_types[v] = SqlType.BINARY
for v in [oid('date')]:
    postgres_types[v] = SqlType.DATE
for v in [
    oid('time'),
    oid('time with time zone'),
    oid('timetz'),
]:
    postgres_types[v] = SqlType.TIME
for v in [
    oid('timestamp'),
    oid('timestamp with time zone'),
    oid('timestamptz'),
]:
    postgres_types[v] = SqlType.TIMESTAMP
for v in [oid('json'), oid('jsonb'), oid('uuid')]:
    postgres_types[v] = SqlType.OTHER
for v in [
    aoid('int2'),
    aoid('int4'),
    aoid('int8'),
    aoid('float4'),
    aoid('float8'),
    aoid('numeric'),
    aoid('text'),
    aoid('varchar'),
    aoid('bool'),
    aoid('date'),
    aoid('timestamp'),
    aoid('timestamptz'),
]:
    postgres_types[v] = SqlType.ARRAY


@dataclass(frozen=True, slots=True)
class ResolvedType:
    """Relational type of a column plus any precision/scale its declaration carried.
    """
    sql_type: SqlType | None
    precision: int | None = None
    scale: int | None = None
    source: str = 'driver'


class TypeResolver:
    """
    Resolves driver column types to relational type codes.

    This class is responsible ONLY for determining the relational type of a
    column. Mapping it onward to a columnar type is the job of the codec
    registry, and converting values is the job of the codecs.
    """

    def __init__(self, config: TypeMappingConfig | None = None) -> None:
        self._config = config
        self._type_maps: dict[str, dict[int, SqlType]] = {
            'postgresql': postgres_types,
            }

    @property
    def config(self) -> TypeMappingConfig:
        return self._config or TypeMappingConfig.get_instance()

    def resolve(
        self,
        dialect: str,
        type_code: Any,
        column_name: str | None = None,
        table_name: str | None = None,
        overrides: dict[str, str] | None = None
    ) -> ResolvedType:
        """
        Resolve a driver type code to a relational type.

        Args:
            dialect: Database dialect ('postgresql', 'sqlite', 'generic')
            type_code: Type code from cursor.description
            column_name: Column name for override lookups
            table_name: Optional table name for configuration lookup
            overrides: Optional column name -> declaration mapping

        Returns
            ResolvedType; its sql_type is None when nothing identifies the type
        """
        if column_name:
            declaration = (overrides or {}).get(column_name.lower())
            if declaration is not None:
                return self._from_declaration(declaration, 'option')

            declaration = self.config.get_type_for_column(dialect, table_name, column_name)
            if declaration is not None:
                return self._from_declaration(declaration, 'config')

        return self.resolve_type_code(dialect, type_code)

    def resolve_type_code(self, dialect: str, type_code: Any) -> ResolvedType:
        """Resolve based only on the driver type code.
        """
        if type_code is None:
            return ResolvedType(None)

        if isinstance(type_code, SqlType):
            return ResolvedType(type_code)

        if isinstance(type_code, str):
            return self._from_declaration(type_code, 'driver')

        if isinstance(type_code, int) and not isinstance(type_code, bool):
            type_map = self._type_maps.get(dialect)
            if type_map is not None:
                return ResolvedType(type_map.get(type_code, SqlType.OTHER))
            try:
                return ResolvedType(SqlType(type_code))
            except ValueError:
                return ResolvedType(None)

        logger.debug(f'Unrecognized type code {type_code!r} for dialect {dialect}')
        return ResolvedType(None)

    def _from_declaration(self, declaration: str, source: str) -> ResolvedType:
        name, precision, scale = parse_type_name(declaration)
        return ResolvedType(type_from_name(name), precision, scale, source)


_global_resolver: TypeResolver | None = None


def resolve_type(
    dialect: str,
    type_code: Any,
    column_name: str | None = None,
    table_name: str | None = None,
    overrides: dict[str, str] | None = None
) -> ResolvedType:
    """
    Central function for type resolution across the codebase.

    Delegates to a module-level TypeResolver created on first use.
    """
    global _global_resolver
    if _global_resolver is None:
        _global_resolver = TypeResolver()
    return _global_resolver.resolve(dialect, type_code, column_name, table_name, overrides)
