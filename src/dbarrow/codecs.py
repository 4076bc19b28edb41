"""
Type codec registry.

The registry is a fixed table in two steps: relational type code ->
columnar kind (`SQL_TYPE_KINDS`), then columnar kind -> codec class
(`CODECS`). Both tables are closed; a relational type missing from the
first one is unsupported, and every ColumnKind has exactly one codec.

A codec knows how to allocate a matching column buffer and how to convert
one driver value (what a DB-API cursor returns for a cell) into the
buffer's stored representation. Conversion narrows, it never coerces across
families: an INTEGER column accepts integral numbers, not strings.
"""
import datetime
import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Any
from zoneinfo import ZoneInfo

import numpy as np
from dateutil import parser as dateparser
from dbarrow.buffers import BooleanBuffer, ColumnBuffer, DecimalBuffer
from dbarrow.buffers import FixedWidthBuffer, VariableWidthBuffer
from dbarrow.exceptions import ConversionError
from dbarrow.memory import BufferAllocator
from dbarrow.sqltypes import SUPPORTED_TYPES, SqlType
from dbarrow.types import ColumnKind, LogicalType

__all__ = [
    'Codec',
    'CODECS',
    'SQL_TYPE_KINDS',
    'codec_for',
    'kind_for',
    ]

logger = logging.getLogger(__name__)

MS_PER_DAY = 86_400_000
ONE_MS = datetime.timedelta(milliseconds=1)
EPOCH = datetime.datetime(1970, 1, 1)
EPOCH_ORDINAL = datetime.date(1970, 1, 1).toordinal()
FLOAT32_MAX = float(np.finfo(np.float32).max)

SQL_TYPE_KINDS = {
    SqlType.CHAR: ColumnKind.UTF8,
    SqlType.NCHAR: ColumnKind.UTF8,
    SqlType.VARCHAR: ColumnKind.UTF8,
    SqlType.NVARCHAR: ColumnKind.UTF8,
    SqlType.LONGVARCHAR: ColumnKind.UTF8,
    SqlType.LONGNVARCHAR: ColumnKind.UTF8,
    SqlType.CLOB: ColumnKind.UTF8,
    SqlType.NUMERIC: ColumnKind.DECIMAL,
    SqlType.DECIMAL: ColumnKind.DECIMAL,
    SqlType.BIT: ColumnKind.BOOL,
    SqlType.TINYINT: ColumnKind.INT8,
    SqlType.SMALLINT: ColumnKind.INT16,
    SqlType.INTEGER: ColumnKind.INT32,
    SqlType.BIGINT: ColumnKind.INT64,
    SqlType.REAL: ColumnKind.FLOAT32,
    SqlType.FLOAT: ColumnKind.FLOAT32,
    SqlType.DOUBLE: ColumnKind.FLOAT64,
    SqlType.BINARY: ColumnKind.BINARY,
    SqlType.VARBINARY: ColumnKind.BINARY,
    SqlType.LONGVARBINARY: ColumnKind.BINARY,
    SqlType.BLOB: ColumnKind.BINARY,
    SqlType.DATE: ColumnKind.DATE,
    SqlType.TIME: ColumnKind.TIME,
    SqlType.TIMESTAMP: ColumnKind.TIMESTAMP,
    }


def _describe(value: Any) -> str:
    text = repr(value)
    if len(text) > 60:
        text = text[:57] + '...'
    return f'{type(value).__name__} {text}'


class Codec:
    """Allocate/append pair for one logical type.

    Subclasses implement `_new_buffer` and `convert`; `append` handles
    nulls for all of them.
    """

    kind: ColumnKind

    def __init__(self, logical_type: LogicalType) -> None:
        if logical_type.kind is not self.kind:
            raise ValueError(f'{type(self).__name__} can not encode {logical_type}')
        self.logical_type = logical_type
        self.arrow_type = logical_type.arrow_type

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.logical_type})'

    def allocate(self, expected_row_count: int, allocator: BufferAllocator) -> ColumnBuffer:
        """Create an empty buffer pre-sized for `expected_row_count` rows."""
        return self._new_buffer(expected_row_count, allocator)

    def _new_buffer(self, capacity: int, allocator: BufferAllocator) -> ColumnBuffer:
        raise NotImplementedError('Subclasses must implement _new_buffer')

    def convert(self, value: Any) -> Any:
        """Convert a non-null driver value to the stored representation."""
        raise NotImplementedError('Subclasses must implement convert')

    def append(self, cell: Any, buffer: ColumnBuffer) -> None:
        """Append one cell; None appends a null slot."""
        if cell is None:
            buffer.append_null()
            return
        buffer.append(self.convert(cell))

    def _reject(self, value: Any, reason: str | None = None) -> ConversionError:
        message = f'Can not convert {_describe(value)} to {self.logical_type}'
        if reason:
            message = f'{message}: {reason}'
        return ConversionError(message, value=value)


class BoolCodec(Codec):
    kind = ColumnKind.BOOL

    def _new_buffer(self, capacity, allocator):
        return BooleanBuffer(allocator, capacity)

    def convert(self, value):
        if isinstance(value, bool | np.bool_):
            return bool(value)
        if isinstance(value, int | np.integer) and value in {0, 1}:
            return bool(value)
        raise self._reject(value)


class IntegerCodec(Codec):
    """Signed integers of a fixed width; out of range values are rejected."""

    dtype: type

    def __init__(self, logical_type: LogicalType) -> None:
        super().__init__(logical_type)
        info = np.iinfo(self.dtype)
        self.min_value, self.max_value = int(info.min), int(info.max)

    def _new_buffer(self, capacity, allocator):
        return FixedWidthBuffer(self.arrow_type, self.dtype, allocator, capacity)

    def _to_int(self, value: Any) -> int:
        if isinstance(value, int | np.integer):
            return int(value)
        if isinstance(value, Decimal):
            if value.is_finite() and value == value.to_integral_value():
                return int(value)
            raise self._reject(value, 'not an integral value')
        if isinstance(value, float | np.floating):
            if float(value).is_integer():
                return int(value)
            raise self._reject(value, 'not an integral value')
        raise self._reject(value)

    def convert(self, value):
        number = self._to_int(value)
        if not self.min_value <= number <= self.max_value:
            raise self._reject(value, f'out of range [{self.min_value}, {self.max_value}]')
        return number


class Int8Codec(IntegerCodec):
    kind = ColumnKind.INT8
    dtype = np.int8


class Int16Codec(IntegerCodec):
    kind = ColumnKind.INT16
    dtype = np.int16


class Int32Codec(IntegerCodec):
    kind = ColumnKind.INT32
    dtype = np.int32


class Int64Codec(IntegerCodec):
    kind = ColumnKind.INT64
    dtype = np.int64


class Float64Codec(Codec):
    kind = ColumnKind.FLOAT64
    dtype = np.float64

    def _new_buffer(self, capacity, allocator):
        return FixedWidthBuffer(self.arrow_type, self.dtype, allocator, capacity)

    def convert(self, value):
        if isinstance(value, bool | np.bool_) or \
                not isinstance(value, int | float | Decimal | np.integer | np.floating):
            raise self._reject(value)
        try:
            return float(value)
        except (OverflowError, ValueError) as e:
            raise self._reject(value, str(e)) from e


class Float32Codec(Float64Codec):
    kind = ColumnKind.FLOAT32
    dtype = np.float32

    def convert(self, value):
        number = super().convert(value)
        if math.isfinite(number) and abs(number) > FLOAT32_MAX:
            raise self._reject(value, 'out of range for a 32-bit float')
        return number


class DecimalCodec(Codec):
    """Scaled integers with the column's fixed precision and scale.

    Values are rescaled exactly: a value with more fractional digits than
    the column scale, or more total digits than the precision, is rejected
    rather than rounded.
    """

    kind = ColumnKind.DECIMAL

    def __init__(self, logical_type: LogicalType) -> None:
        super().__init__(logical_type)
        self.precision = logical_type.precision
        self.scale = logical_type.scale

    def _new_buffer(self, capacity, allocator):
        return DecimalBuffer(self.arrow_type, allocator, capacity)

    def _to_decimal(self, value: Any) -> Decimal:
        if isinstance(value, Decimal):
            return value
        if isinstance(value, bool | np.bool_):
            raise self._reject(value)
        if isinstance(value, int | np.integer):
            return Decimal(int(value))
        if isinstance(value, float | np.floating):
            # shortest repr, so 123.45 stays 123.45 rather than its binary expansion
            return Decimal(repr(float(value)))
        if isinstance(value, str):
            try:
                return Decimal(value.strip())
            except InvalidOperation as e:
                raise self._reject(value, 'not a number') from e
        raise self._reject(value)

    def convert(self, value):
        number = self._to_decimal(value)
        if not number.is_finite():
            raise self._reject(value, 'not a finite number')
        sign, digits, exponent = number.as_tuple()
        digits = ''.join(map(str, digits)).lstrip('0')
        if not digits:
            return 0
        unscaled = int(digits)
        shift = exponent + self.scale
        # bound the exponent before any power of ten is computed
        if len(digits) + shift > self.precision:
            raise self._reject(value, f'more than {self.precision} digits')
        if -shift > len(digits):
            raise self._reject(value, f'more than {self.scale} fractional digits')
        if shift >= 0:
            scaled = unscaled * 10 ** shift
        else:
            scaled, remainder = divmod(unscaled, 10 ** -shift)
            if remainder:
                raise self._reject(value, f'more than {self.scale} fractional digits')
        if len(str(scaled)) > self.precision:
            raise self._reject(value, f'more than {self.precision} digits')
        return -scaled if sign else scaled


class VariableWidthCodec(Codec):

    def _new_buffer(self, capacity, allocator):
        return VariableWidthBuffer(self.arrow_type, allocator, capacity)


class Utf8Codec(VariableWidthCodec):
    kind = ColumnKind.UTF8

    def convert(self, value):
        if not isinstance(value, str):
            raise self._reject(value)
        try:
            return value.encode('utf-8')
        except UnicodeEncodeError as e:
            raise self._reject(value, 'not encodable as UTF-8') from e


class BinaryCodec(VariableWidthCodec):
    kind = ColumnKind.BINARY

    def convert(self, value):
        if isinstance(value, bytes):
            return value
        if isinstance(value, bytearray | memoryview):
            return bytes(value)
        raise self._reject(value)


class TemporalCodec(Codec):
    """Shared ISO-8601 parsing for text-storage engines (sqlite)."""

    dtype: type

    def _new_buffer(self, capacity, allocator):
        return FixedWidthBuffer(self.arrow_type, self.dtype, allocator, capacity)

    def _parse_datetime(self, value: str) -> datetime.datetime:
        try:
            return dateparser.isoparse(value.strip())
        except (ValueError, OverflowError) as e:
            raise self._reject(value, 'not an ISO-8601 date/time') from e


class DateCodec(TemporalCodec):
    """Milliseconds since the epoch at UTC midnight of the date."""

    kind = ColumnKind.DATE
    dtype = np.int64

    def convert(self, value):
        if isinstance(value, str):
            value = self._parse_datetime(value)
        if isinstance(value, datetime.datetime):
            value = value.date()
        if not isinstance(value, datetime.date):
            raise self._reject(value)
        return (value.toordinal() - EPOCH_ORDINAL) * MS_PER_DAY


class TimeCodec(TemporalCodec):
    """Milliseconds since midnight; sub-millisecond digits are truncated."""

    kind = ColumnKind.TIME
    dtype = np.int32

    def convert(self, value):
        if isinstance(value, str):
            try:
                value = dateparser.isoparser().parse_isotime(value.strip())
            except ValueError as e:
                raise self._reject(value, 'not an ISO-8601 time') from e
        if isinstance(value, datetime.time):
            seconds = (value.hour * 60 + value.minute) * 60 + value.second
            return seconds * 1000 + value.microsecond // 1000
        if isinstance(value, datetime.timedelta):
            millis = value // ONE_MS
            if not 0 <= millis < MS_PER_DAY:
                raise self._reject(value, 'not within one day')
            return millis
        raise self._reject(value)


class TimestampCodec(TemporalCodec):
    """Milliseconds since the epoch in UTC.

    Aware datetimes are converted to UTC. Naive datetimes are wall-clock
    time in the column timezone when one is set, UTC otherwise.
    """

    kind = ColumnKind.TIMESTAMP
    dtype = np.int64

    def __init__(self, logical_type: LogicalType) -> None:
        super().__init__(logical_type)
        self.zone = ZoneInfo(logical_type.timezone) if logical_type.timezone else None

    def convert(self, value):
        if isinstance(value, str):
            value = self._parse_datetime(value)
        elif isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
            value = datetime.datetime.combine(value, datetime.time())
        if not isinstance(value, datetime.datetime):
            raise self._reject(value)
        if value.tzinfo is None and self.zone is not None:
            value = value.replace(tzinfo=self.zone)
        if value.tzinfo is not None:
            value = value.astimezone(datetime.UTC).replace(tzinfo=None)
        return (value - EPOCH) // ONE_MS


CODECS = {
    ColumnKind.BOOL: BoolCodec,
    ColumnKind.INT8: Int8Codec,
    ColumnKind.INT16: Int16Codec,
    ColumnKind.INT32: Int32Codec,
    ColumnKind.INT64: Int64Codec,
    ColumnKind.FLOAT32: Float32Codec,
    ColumnKind.FLOAT64: Float64Codec,
    ColumnKind.DECIMAL: DecimalCodec,
    ColumnKind.UTF8: Utf8Codec,
    ColumnKind.BINARY: BinaryCodec,
    ColumnKind.DATE: DateCodec,
    ColumnKind.TIME: TimeCodec,
    ColumnKind.TIMESTAMP: TimestampCodec,
    }


def codec_for(logical_type: LogicalType) -> Codec:
    """Create the codec for a logical type."""
    return CODECS[logical_type.kind](logical_type)


def kind_for(sql_type: SqlType) -> ColumnKind | None:
    """Columnar kind for a relational type code, None when unsupported."""
    return SQL_TYPE_KINDS.get(sql_type)


assert set(CODECS) == set(ColumnKind), 'every ColumnKind needs a codec'
assert set(SQL_TYPE_KINDS) == SUPPORTED_TYPES, 'codec table out of sync with SUPPORTED_TYPES'
