"""
Row-set metadata abstraction across database backends.
"""
import logging
from typing import Any, Self

from dbarrow.adapters.type_mapping import resolve_type
from dbarrow.sqltypes import SqlType

__all__ = [
    'ColumnDescriptor',
    'columns_from_cursor_description',
]

logger = logging.getLogger(__name__)


class ColumnDescriptor:
    """Metadata of one result column as reported by the driver

    Technical implementation details:
    - Encapsulates driver column metadata (type_code, precision, scale, etc.)
    - Resolves the driver type_code to a relational type code via TypeResolver
    - Keeps the raw driver type_code next to the resolved `sql_type` so error
      messages can name what the driver actually reported
    - Unknown nullability is reported as nullable

    Database compatibility:
    - PostgreSQL: psycopg Column objects carrying OIDs and numeric typmods
    - SQLite: 7-tuples with no type information; types come from overrides
    - Generic: 7-tuples whose type_code is a SqlType, a JDBC code or a type name
    """

    def __init__(self,
                 name: str,
                 sql_type: SqlType | None,
                 type_code: Any = None,
                 display_size: int | None = None,
                 internal_size: int | None = None,
                 precision: int | None = None,
                 scale: int | None = None,
                 nullable: bool = True):
        """
        Initialize column metadata

        Args:
            name: Display name of the column
            sql_type: Relational type code, None when it could not be resolved
            type_code: Driver-specific type code
            display_size: Maximum display size (character count)
            internal_size: Internal storage size (bytes)
            precision: Numeric precision (for numeric types)
            scale: Numeric scale (for numeric types)
            nullable: Whether the column allows NULL values
        """
        self.name = name
        self.sql_type = sql_type
        self.type_code = type_code
        self.display_size = display_size
        self.internal_size = internal_size
        self.precision = precision
        self.scale = scale
        self.nullable = nullable

    @classmethod
    def from_cursor_description(cls, description_item: Any, dialect: str,
                                table_name: str | None = None,
                                overrides: dict[str, str] | None = None) -> Self:
        """Create a ColumnDescriptor from a cursor description item.

        Args:
            description_item: One item from cursor.description
            dialect: Database dialect ('postgresql', 'sqlite', 'generic')
            table_name: Optional table name for configuration lookups
            overrides: Optional column name -> type declaration mapping

        Returns
            ColumnDescriptor instance
        """
        info = _extract_column_info(description_item)
        resolved = resolve_type(dialect, info['type_code'], info['name'],
                                table_name=table_name, overrides=overrides)
        if resolved.precision is not None:
            info['precision'] = resolved.precision
            info['scale'] = resolved.scale
        if resolved.source != 'driver':
            logger.debug(f'Column {info["name"]!r} typed {resolved.sql_type!r} from {resolved.source} override')
        return cls(sql_type=resolved.sql_type, **info)

    def __repr__(self) -> str:
        sql_type = self.sql_type.name if self.sql_type is not None else None
        return (f'ColumnDescriptor(name={self.name!r}, sql_type={sql_type}, '
                f'precision={self.precision}, scale={self.scale}, nullable={self.nullable})')

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColumnDescriptor):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization.
        """
        return {
            'name': self.name,
            'sql_type': self.sql_type.name if self.sql_type is not None else None,
            'type_code': self.type_code,
            'display_size': self.display_size,
            'internal_size': self.internal_size,
            'precision': self.precision,
            'scale': self.scale,
            'nullable': self.nullable,
            }

    @staticmethod
    def get_names(columns: list[Self]) -> list[str]:
        """Get column names from a list of ColumnDescriptor objects.
        """
        return [col.name for col in columns]


def _field(item: Any, attr: str, index: int) -> Any:
    """Read a description field by attribute (psycopg) or position (7-tuple)."""
    if hasattr(item, attr):
        return getattr(item, attr)
    try:
        return item[index]
    except (IndexError, TypeError):
        return None


def _extract_column_info(description_item: Any) -> dict:
    null_ok = _field(description_item, 'null_ok', 6)
    return {
        'name': _field(description_item, 'name', 0),
        'type_code': _field(description_item, 'type_code', 1),
        'display_size': _field(description_item, 'display_size', 2),
        'internal_size': _field(description_item, 'internal_size', 3),
        'precision': _field(description_item, 'precision', 4),
        'scale': _field(description_item, 'scale', 5),
        'nullable': True if null_ok is None else bool(null_ok),
        }


def columns_from_cursor_description(cursor: Any, dialect: str,
                                    table_name: str | None = None,
                                    overrides: dict[str, str] | None = None) -> list[ColumnDescriptor]:
    """Create ColumnDescriptor objects directly from a cursor description.

    Args:
        cursor: Database cursor with a description attribute
        dialect: Database dialect ('postgresql', 'sqlite', 'generic')
        table_name: Optional table name for configuration lookups
        overrides: Optional column name -> type declaration mapping

    Returns
        List of ColumnDescriptor objects, empty when the cursor has no result set
    """
    if cursor.description is None:
        return []

    return [ColumnDescriptor.from_cursor_description(item, dialect, table_name, overrides)
            for item in cursor.description]
