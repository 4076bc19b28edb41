"""
Buffer allocation for column buffers.

The allocator is an accounting arena over a process-wide ``pyarrow``
memory pool. Buffers it hands out are reference counted ``pyarrow``
buffers, so a region can be detached from the arena (ownership moves to
whoever holds the buffer, usually a finished table) and stays valid after
the allocator is closed.
"""
import logging
import threading
from typing import Any

import numpy as np
import pyarrow as pa
from dbarrow.exceptions import AllocationError

__all__ = [
    'BufferAllocator',
    'Region',
    'get_memory_pool',
]

logger = logging.getLogger(__name__)

ALIGNMENT = 64


def get_memory_pool(name: str = 'default') -> pa.MemoryPool:
    """Return a process-wide pyarrow memory pool by name.
    """
    if name == 'default':
        return pa.default_memory_pool()
    if name == 'system':
        return pa.system_memory_pool()
    if name == 'jemalloc':
        return pa.jemalloc_memory_pool()
    if name == 'mimalloc':
        return pa.mimalloc_memory_pool()
    raise ValueError(f'Unknown memory pool: {name}')


def _aligned(nbytes: int) -> int:
    return max(ALIGNMENT, (nbytes + ALIGNMENT - 1) // ALIGNMENT * ALIGNMENT)


class Region:
    """A resizable buffer drawn from a BufferAllocator.

    New bytes are zero filled on every growth, so unwritten slots (null
    values, cleared validity bits) always read as zero.
    """

    def __init__(self, allocator: 'BufferAllocator', buffer: pa.ResizableBuffer) -> None:
        self.allocator = allocator
        self.buffer = buffer
        self.detached = False

    @property
    def size(self) -> int:
        return self.buffer.size

    def resize(self, nbytes: int) -> None:
        """Grow the region to at least `nbytes`, keeping its contents.

        Any memoryview or numpy view taken before the call must be dropped;
        the backing memory may move.
        """
        old = self.buffer.size
        if nbytes <= old:
            return
        new = _aligned(nbytes)
        self.allocator._reserve(new - old)
        try:
            self.buffer.resize(new)
        except MemoryError as e:
            self.allocator._release(new - old)
            raise AllocationError(f'Could not grow buffer to {new} bytes') from e
        self.view()[old:new] = 0

    def view(self, dtype: Any = np.uint8) -> np.ndarray:
        """Writable numpy view of the whole region."""
        return np.frombuffer(self.buffer, dtype=dtype)

    def freeze(self, nbytes: int) -> pa.Buffer:
        """Return a buffer holding the first `nbytes` and detach the region.

        When the region is more than twice the aligned size needed (the
        capacity was pre-sized past the actual row count) the bytes are
        copied into an exact-size buffer and the region's memory is dropped;
        otherwise the result is a zero-copy slice of the region.
        """
        if self.buffer.size > 2 * _aligned(nbytes):
            frozen = pa.allocate_buffer(nbytes, memory_pool=self.allocator.memory_pool)
            if nbytes:
                np.frombuffer(frozen, dtype=np.uint8)[:] = self.view()[:nbytes]
            self.allocator.detach(self)
            self.buffer = pa.allocate_buffer(0, resizable=True)
            return frozen
        sliced = self.buffer.slice(0, nbytes)
        self.allocator.detach(self)
        return sliced

    def release(self) -> None:
        """Return the region's bytes to the allocator's budget."""
        self.allocator.detach(self)
        self.buffer = pa.allocate_buffer(0, resizable=True)


class BufferAllocator:
    """Accounting arena handing out resizable buffers.

    Technical implementation details:
    - Memory comes from a process-wide pyarrow pool, never from a pool owned
      by this object, so buffers outlive the allocator
    - Tracks bytes held by attached regions against an optional limit
    - Regions are detached when a column is finalized; the table then owns
      the memory and the allocator no longer counts it
    - Accounting is guarded by a lock so one allocator can serve several
      conversions, each of which uses it from a single thread

    Usable as a context manager; `close()` drops any regions still attached
    (the buffers of a conversion that failed) and is idempotent.
    """

    def __init__(self, limit: int | None = None,
                 memory_pool: pa.MemoryPool | str | None = None) -> None:
        if isinstance(memory_pool, str) or memory_pool is None:
            memory_pool = get_memory_pool(memory_pool or 'default')
        self.memory_pool = memory_pool
        self.limit = limit
        self._lock = threading.Lock()
        self._regions: set[Region] = set()
        self._bytes_allocated = 0
        self._peak_bytes = 0
        self._closed = False

    def __enter__(self) -> 'BufferAllocator':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def __repr__(self) -> str:
        return (f'BufferAllocator(bytes_allocated={self._bytes_allocated}, '
                f'limit={self.limit}, closed={self._closed})')

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def bytes_allocated(self) -> int:
        """Bytes held by regions still attached to this allocator."""
        return self._bytes_allocated

    @property
    def peak_bytes(self) -> int:
        return self._peak_bytes

    def _reserve(self, nbytes: int) -> None:
        with self._lock:
            if self._closed:
                raise AllocationError('Allocator is closed')
            total = self._bytes_allocated + nbytes
            if self.limit is not None and total > self.limit:
                raise AllocationError(
                    f'Allocation of {nbytes} bytes exceeds limit '
                    f'({self._bytes_allocated} of {self.limit} bytes in use)')
            self._bytes_allocated = total
            self._peak_bytes = max(self._peak_bytes, total)

    def _release(self, nbytes: int) -> None:
        with self._lock:
            self._bytes_allocated -= nbytes

    def allocate(self, nbytes: int) -> Region:
        """Allocate a zero-filled resizable region of at least `nbytes`.
        """
        size = _aligned(nbytes)
        self._reserve(size)
        try:
            buffer = pa.allocate_buffer(size, memory_pool=self.memory_pool, resizable=True)
        except MemoryError as e:
            self._release(size)
            raise AllocationError(f'Could not allocate {size} bytes') from e
        region = Region(self, buffer)
        region.view()[:] = 0
        with self._lock:
            self._regions.add(region)
        return region

    def detach(self, region: Region) -> None:
        """Stop accounting for `region`; its memory now belongs to its holders.
        """
        with self._lock:
            if region.detached or region not in self._regions:
                return
            self._regions.discard(region)
            self._bytes_allocated -= region.size
            region.detached = True

    def close(self) -> None:
        """Release attached regions and refuse further allocation.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            outstanding = list(self._regions)
        if outstanding:
            logger.warning(f'Closing allocator with {len(outstanding)} attached '
                           f'regions ({self._bytes_allocated} bytes)')
        for region in outstanding:
            region.release()
