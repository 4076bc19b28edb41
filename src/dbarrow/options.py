from dataclasses import dataclass, field, fields
from typing import Any, Self
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dbarrow.utils import SUPPORTED_DIALECTS

from libb import ConfigOptions

__all__ = [
    'ConversionOptions',
    'MEMORY_POOLS',
    'SUPPORTED_DIALECTS',
]

MEMORY_POOLS = ('default', 'system', 'jemalloc', 'mimalloc')
MAX_DECIMAL_PRECISION = 76


@dataclass
class ConversionOptions(ConfigOptions):
    """Options

    supported dialects: `postgresql`, `sqlite`, `generic` (auto-detected
    from the cursor when not given)

    Buffer sizing options:
    - row_count_hint: Rows to pre-size buffers for (default: cursor rowcount
      when the driver knows it, else initial_capacity)
    - initial_capacity: Rows to pre-size buffers for without a hint (default: 1024)
    - batch_size: Rows fetched per fetchmany() call (default: 5000)

    Memory options:
    - memory_pool: pyarrow pool backing the buffers (default: 'default')
    - allocation_limit: Byte limit for an internally created allocator
      (default: None, unlimited)

    Type options:
    - timezone: Timezone attached to TIMESTAMP columns; naive values are read
      as wall-clock time in that zone (default: None, UTC without timezone)
    - strict_decimal_scale: Reject negative decimal scales instead of
      clamping them to zero (default: False)
    - default_decimal_precision/default_decimal_scale: Used for NUMERIC
      columns whose metadata has no precision (default: None, reject)
    - column_types: Per-call column type overrides, name -> declaration
    - table_name: Table name used for `table.column` configuration lookups
    """
    dialect: str = None
    batch_size: int = 5000
    row_count_hint: int = None
    initial_capacity: int = 1024
    memory_pool: str = 'default'
    allocation_limit: int = None
    timezone: str = None
    strict_decimal_scale: bool = False
    default_decimal_precision: int = None
    default_decimal_scale: int = 0
    column_types: dict[str, str] = field(default_factory=dict)
    table_name: str = None

    def __post_init__(self):
        if self.dialect is not None:
            self.dialect = self.dialect.lower()
            if self.dialect not in SUPPORTED_DIALECTS:
                raise ValueError(f'dialect must be one of: {SUPPORTED_DIALECTS}')
        if self.batch_size < 1:
            raise ValueError('batch_size must be positive')
        if self.initial_capacity < 0:
            raise ValueError('initial_capacity can not be negative')
        if self.row_count_hint is not None and self.row_count_hint < 0:
            raise ValueError('row_count_hint can not be negative')
        if self.memory_pool not in MEMORY_POOLS:
            raise ValueError(f'memory_pool must be one of: {MEMORY_POOLS}')
        if self.allocation_limit is not None and self.allocation_limit < 0:
            raise ValueError('allocation_limit can not be negative')
        if self.timezone is not None:
            try:
                ZoneInfo(self.timezone)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ValueError(f'Unknown timezone: {self.timezone}') from e
        if self.default_decimal_precision is not None and \
                not 1 <= self.default_decimal_precision <= MAX_DECIMAL_PRECISION:
            raise ValueError(f'default_decimal_precision must be between 1 and {MAX_DECIMAL_PRECISION}')
        if self.default_decimal_scale < 0:
            raise ValueError('default_decimal_scale can not be negative')
        self.column_types = {k.lower(): v for k, v in (self.column_types or {}).items()}

    @classmethod
    def coerce(cls, options: Self | dict[str, Any] | None = None, **kw: Any) -> Self:
        """Build options from an instance, a dict, or keyword arguments.

        Keyword arguments override the values carried by `options`.
        """
        if options is None:
            return cls(**kw)
        if isinstance(options, cls):
            if not kw:
                return options
            current = {f.name: getattr(options, f.name) for f in fields(options)}
            return cls(**{**current, **kw})
        if isinstance(options, dict):
            return cls(**{**options, **kw})
        raise TypeError(f'Expected ConversionOptions or dict, got {type(options).__name__}')
