"""
Append-only, nullable column buffers.

Each buffer owns a validity bitmap and one or two value regions drawn from a
BufferAllocator and lays them out exactly as the Arrow columnar format does,
so `finalize()` wraps the regions into a ``pyarrow.Array`` without copying:

- fixed width (ints, floats, temporal): one inline value region
- boolean: bit-packed value region
- decimal: 16 or 32 byte little-endian two's complement integers
- variable width (utf8, binary): int32 offsets region plus a data region

Capacity doubles on demand, so appends are O(1) amortized. Buffers store
already-converted values; conversion from driver values is done by the
codecs.
"""
import logging
from typing import Any

import numpy as np
import pyarrow as pa
from dbarrow.exceptions import ConversionError, SchemaConsistencyError
from dbarrow.memory import BufferAllocator, Region

__all__ = [
    'ColumnBuffer',
    'FixedWidthBuffer',
    'BooleanBuffer',
    'DecimalBuffer',
    'VariableWidthBuffer',
]

logger = logging.getLogger(__name__)

MIN_CAPACITY = 8
VARIABLE_WIDTH_ESTIMATE = 16
MAX_INITIAL_DATA_BYTES = 1 << 16
MAX_OFFSET = 2**31 - 1


def _bitmap_bytes(rows: int) -> int:
    return (rows + 7) // 8


class ColumnBuffer:
    """Base class: validity bitmap, row count, growth and finalization.

    Subclasses implement the value regions through `_allocate_values`,
    `_grow_values`, `_refresh_views`, `_value_buffers` and `get`.
    """

    def __init__(self, arrow_type: pa.DataType, allocator: BufferAllocator,
                 capacity: int = 0) -> None:
        self.arrow_type = arrow_type
        self.allocator = allocator
        self.value_count = 0
        self.null_count = 0
        self._capacity = max(capacity, MIN_CAPACITY)
        self._finalized: pa.Array | None = None
        self._validity: Region = allocator.allocate(_bitmap_bytes(self._capacity))
        self._bits: np.ndarray | None = None
        self._allocate_values(self._capacity)
        self._refresh_views()

    def __len__(self) -> int:
        return self.value_count

    def __repr__(self) -> str:
        return (f'{type(self).__name__}(type={self.arrow_type}, '
                f'value_count={self.value_count}, null_count={self.null_count})')

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def finalized(self) -> bool:
        return self._finalized is not None

    def _allocate_values(self, capacity: int) -> None:
        raise NotImplementedError('Subclasses must implement _allocate_values')

    def _grow_values(self, capacity: int) -> None:
        raise NotImplementedError('Subclasses must implement _grow_values')

    def _refresh_views(self) -> None:
        self._bits = self._validity.view()

    def _drop_views(self) -> None:
        self._bits = None
        self._values = None

    def _value_buffers(self) -> list[pa.Buffer]:
        raise NotImplementedError('Subclasses must implement _value_buffers')

    def _write_null(self, index: int) -> None:
        """Hook for layouts that must record something for a null slot."""

    def _next_slot(self) -> int:
        if self._finalized is not None:
            raise RuntimeError(f'{type(self).__name__} is finalized')
        index = self.value_count
        if index >= self._capacity:
            capacity = max(self._capacity * 2, MIN_CAPACITY)
            self._validity.resize(_bitmap_bytes(capacity))
            self._grow_values(capacity)
            self._capacity = capacity
            self._refresh_views()
        return index

    def _commit(self, index: int) -> None:
        self._bits[index >> 3] |= 1 << (index & 7)
        self.value_count = index + 1

    def append_null(self) -> None:
        """Append a null slot; the value slot keeps its zero representation."""
        index = self._next_slot()
        self._write_null(index)
        self.value_count = index + 1
        self.null_count += 1

    def append(self, value: Any) -> None:
        raise NotImplementedError('Subclasses must implement append')

    def is_null(self, index: int) -> bool:
        self._check_index(index)
        if self._finalized is not None:
            return not self._finalized[index].is_valid
        return not (self._bits[index >> 3] >> (index & 7)) & 1

    def get(self, index: int) -> Any:
        """Read the value at `index`, or None for a null slot.

        Before finalization this is the stored representation (epoch ticks,
        scaled decimal integers, raw bytes); afterwards it is the Python
        value of the finished Arrow array.
        """
        raise NotImplementedError('Subclasses must implement get')

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.value_count:
            raise IndexError(f'index {index} out of range for {self.value_count} values')

    def finalize(self, expected_count: int | None = None) -> pa.Array:
        """Trim to the row count and return an immutable ``pyarrow.Array``.

        The regions are detached from the allocator; the returned array owns
        them. Regions pre-sized well past the row count are copied down to
        their used size (see `Region.freeze`), otherwise the array slices the
        region in place and keeps at most the doubled capacity alive. Calling
        it again returns the same array.
        """
        if self._finalized is not None:
            return self._finalized
        if expected_count is not None and expected_count != self.value_count:
            raise SchemaConsistencyError(
                f'Column holds {self.value_count} values, expected {expected_count}')

        if self.null_count:
            validity = self._validity.freeze(_bitmap_bytes(self.value_count))
        else:
            self._validity.release()
            validity = None
        array = pa.Array.from_buffers(
            self.arrow_type, self.value_count, [validity, *self._value_buffers()],
            null_count=self.null_count)
        array.validate()
        self._drop_views()
        self._finalized = array
        return array

    def release(self) -> None:
        """Give unfinished regions back to the allocator."""
        if self._finalized is None:
            self._validity.release()
            self._release_values()

    def _release_values(self) -> None:
        raise NotImplementedError('Subclasses must implement _release_values')


class FixedWidthBuffer(ColumnBuffer):
    """Inline values of a fixed numpy dtype (ints, floats, temporal ticks)."""

    def __init__(self, arrow_type: pa.DataType, dtype: Any,
                 allocator: BufferAllocator, capacity: int = 0) -> None:
        self.dtype = np.dtype(dtype)
        super().__init__(arrow_type, allocator, capacity)

    def _allocate_values(self, capacity):
        self._values_region = self.allocator.allocate(capacity * self.dtype.itemsize)

    def _grow_values(self, capacity):
        self._values_region.resize(capacity * self.dtype.itemsize)

    def _refresh_views(self):
        super()._refresh_views()
        self._values = self._values_region.view(self.dtype)

    def _value_buffers(self):
        return [self._values_region.freeze(self.value_count * self.dtype.itemsize)]

    def _release_values(self):
        self._values_region.release()

    def append(self, value):
        index = self._next_slot()
        self._values[index] = value
        self._commit(index)

    def get(self, index):
        self._check_index(index)
        if self._finalized is not None:
            return self._finalized[index].as_py()
        if self.is_null(index):
            return None
        return self._values[index].item()


class BooleanBuffer(ColumnBuffer):
    """Bit-packed boolean values."""

    def __init__(self, allocator: BufferAllocator, capacity: int = 0) -> None:
        super().__init__(pa.bool_(), allocator, capacity)

    def _allocate_values(self, capacity):
        self._values_region = self.allocator.allocate(_bitmap_bytes(capacity))

    def _grow_values(self, capacity):
        self._values_region.resize(_bitmap_bytes(capacity))

    def _refresh_views(self):
        super()._refresh_views()
        self._values = self._values_region.view()

    def _value_buffers(self):
        return [self._values_region.freeze(_bitmap_bytes(self.value_count))]

    def _release_values(self):
        self._values_region.release()

    def append(self, value):
        index = self._next_slot()
        if value:
            self._values[index >> 3] |= 1 << (index & 7)
        self._commit(index)

    def get(self, index):
        self._check_index(index)
        if self._finalized is not None:
            return self._finalized[index].as_py()
        if self.is_null(index):
            return None
        return bool((self._values[index >> 3] >> (index & 7)) & 1)


class DecimalBuffer(ColumnBuffer):
    """Scaled integers in 16 (decimal128) or 32 (decimal256) byte slots.

    `append` takes the already scaled integer.
    """

    def __init__(self, arrow_type: pa.DataType, allocator: BufferAllocator,
                 capacity: int = 0) -> None:
        self.byte_width = arrow_type.byte_width
        super().__init__(arrow_type, allocator, capacity)

    def _allocate_values(self, capacity):
        self._values_region = self.allocator.allocate(capacity * self.byte_width)

    def _grow_values(self, capacity):
        self._values_region.resize(capacity * self.byte_width)

    def _refresh_views(self):
        super()._refresh_views()
        self._values = self._values_region.view()

    def _value_buffers(self):
        return [self._values_region.freeze(self.value_count * self.byte_width)]

    def _release_values(self):
        self._values_region.release()

    def append(self, value: int):
        raw = value.to_bytes(self.byte_width, 'little', signed=True)
        index = self._next_slot()
        start = index * self.byte_width
        self._values[start:start + self.byte_width] = np.frombuffer(raw, dtype=np.uint8)
        self._commit(index)

    def get(self, index):
        self._check_index(index)
        if self._finalized is not None:
            return self._finalized[index].as_py()
        if self.is_null(index):
            return None
        start = index * self.byte_width
        raw = self._values[start:start + self.byte_width].tobytes()
        return int.from_bytes(raw, 'little', signed=True)


class VariableWidthBuffer(ColumnBuffer):
    """int32 offsets plus one contiguous data region (utf8 and binary)."""

    def __init__(self, arrow_type: pa.DataType, allocator: BufferAllocator,
                 capacity: int = 0) -> None:
        super().__init__(arrow_type, allocator, capacity)

    def _allocate_values(self, capacity):
        self._offsets_region = self.allocator.allocate((capacity + 1) * 4)
        # bounded up front, grows by doubling
        self._data_region = self.allocator.allocate(
            min(capacity * VARIABLE_WIDTH_ESTIMATE, MAX_INITIAL_DATA_BYTES))

    def _grow_values(self, capacity):
        self._offsets_region.resize((capacity + 1) * 4)

    def _refresh_views(self):
        super()._refresh_views()
        self._offsets = self._offsets_region.view(np.int32)
        self._data = self._data_region.view()

    def _drop_views(self):
        super()._drop_views()
        self._offsets = self._data = None

    def _value_buffers(self):
        end = int(self._offsets[self.value_count])
        return [
            self._offsets_region.freeze((self.value_count + 1) * 4),
            self._data_region.freeze(end),
            ]

    def _release_values(self):
        self._offsets_region.release()
        self._data_region.release()

    def _write_null(self, index):
        self._offsets[index + 1] = self._offsets[index]

    @property
    def data_size(self) -> int:
        """Bytes used in the data region."""
        return self.offsets()[-1]

    def append(self, value: bytes):
        index = self._next_slot()
        start = int(self._offsets[index])
        end = start + len(value)
        if end > MAX_OFFSET:
            raise ConversionError(f'Column data exceeds {MAX_OFFSET} bytes')
        if end > self._data_region.size:
            self._data_region.resize(max(end, self._data_region.size * 2))
            self._data = self._data_region.view()
        self._data[start:end] = np.frombuffer(value, dtype=np.uint8)
        self._offsets[index + 1] = end
        self._commit(index)

    def offsets(self) -> list[int]:
        """Offsets of the values appended so far (value_count + 1 entries)."""
        if self._finalized is not None:
            offsets = self._finalized.buffers()[1]
            return np.frombuffer(offsets, dtype=np.int32)[:self.value_count + 1].tolist()
        return self._offsets[:self.value_count + 1].tolist()

    def get(self, index):
        self._check_index(index)
        if self._finalized is not None:
            return self._finalized[index].as_py()
        if self.is_null(index):
            return None
        start, end = int(self._offsets[index]), int(self._offsets[index + 1])
        return self._data[start:end].tobytes()
