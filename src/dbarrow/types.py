"""
Columnar (logical) types.

A LogicalType is the closed set of column encodings a conversion can
produce. Every member maps to exactly one Arrow type:

- BOOL -> bool
- INT8/INT16/INT32/INT64 -> signed integers
- FLOAT32/FLOAT64 -> floating point
- DECIMAL(p, s) -> decimal128 (decimal256 when p > 38)
- UTF8/BINARY -> string/binary with int32 offsets
- DATE -> date64 (milliseconds since epoch, UTC midnight)
- TIME -> time32 milliseconds of day
- TIMESTAMP -> timestamp milliseconds since epoch, optional timezone
"""
from dataclasses import dataclass
from enum import Enum
from typing import Self

import pyarrow as pa

__all__ = [
    'ColumnKind',
    'LogicalType',
    'DECIMAL128_MAX_PRECISION',
    'DECIMAL256_MAX_PRECISION',
]

DECIMAL128_MAX_PRECISION = 38
DECIMAL256_MAX_PRECISION = 76


class ColumnKind(Enum):
    """Columnar encoding families."""
    BOOL = 'bool'
    INT8 = 'int8'
    INT16 = 'int16'
    INT32 = 'int32'
    INT64 = 'int64'
    FLOAT32 = 'float32'
    FLOAT64 = 'float64'
    DECIMAL = 'decimal'
    UTF8 = 'utf8'
    BINARY = 'binary'
    DATE = 'date'
    TIME = 'time'
    TIMESTAMP = 'timestamp'


_SIMPLE_ARROW_TYPES = {
    ColumnKind.BOOL: pa.bool_(),
    ColumnKind.INT8: pa.int8(),
    ColumnKind.INT16: pa.int16(),
    ColumnKind.INT32: pa.int32(),
    ColumnKind.INT64: pa.int64(),
    ColumnKind.FLOAT32: pa.float32(),
    ColumnKind.FLOAT64: pa.float64(),
    ColumnKind.UTF8: pa.string(),
    ColumnKind.BINARY: pa.binary(),
    ColumnKind.DATE: pa.date64(),
    ColumnKind.TIME: pa.time32('ms'),
    }


@dataclass(frozen=True, slots=True)
class LogicalType:
    """A column's columnar type.

    `precision` and `scale` are only set for DECIMAL, `timezone` only for
    TIMESTAMP. Instances are immutable and compare by value.
    """
    kind: ColumnKind
    precision: int | None = None
    scale: int | None = None
    timezone: str | None = None

    @classmethod
    def decimal(cls, precision: int, scale: int) -> Self:
        return cls(ColumnKind.DECIMAL, precision=precision, scale=scale)

    @classmethod
    def timestamp(cls, timezone: str | None = None) -> Self:
        return cls(ColumnKind.TIMESTAMP, timezone=timezone)

    @property
    def arrow_type(self) -> pa.DataType:
        if self.kind is ColumnKind.DECIMAL:
            if self.precision > DECIMAL128_MAX_PRECISION:
                return pa.decimal256(self.precision, self.scale)
            return pa.decimal128(self.precision, self.scale)
        if self.kind is ColumnKind.TIMESTAMP:
            return pa.timestamp('ms', tz=self.timezone)
        return _SIMPLE_ARROW_TYPES[self.kind]

    def __str__(self) -> str:
        if self.kind is ColumnKind.DECIMAL:
            return f'Decimal({self.precision}, {self.scale})'
        if self.kind is ColumnKind.TIMESTAMP and self.timezone:
            return f'Timestamp({self.timezone})'
        return self.kind.name.title()
