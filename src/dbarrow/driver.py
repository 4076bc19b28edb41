"""
Row driver: streams cursor rows into column buffers.

The driver runs a single synchronous pass over the result set and moves
through three states:

- INIT: schema known, buffers allocated and pre-sized
- STREAMING: rows fetched in batches, every cell appended through its codec
- DONE: all rows consumed; the buffers are ready for table assembly

Any failure aborts the whole pass. Buffers are released back to the
allocator and the error reaches the caller; nothing is retried.
"""
import logging
from collections.abc import Iterator, Mapping, Sequence
from enum import Enum
from typing import Any

from dbarrow.buffers import ColumnBuffer
from dbarrow.codecs import Codec, codec_for
from dbarrow.exceptions import ConversionError, DatabaseError, DriverError
from dbarrow.exceptions import SourceError
from dbarrow.memory import BufferAllocator
from dbarrow.options import ConversionOptions
from dbarrow.schema import ColumnSchema

__all__ = [
    'DriverState',
    'RowDriver',
    'iter_rows',
]

logger = logging.getLogger(__name__)

_END = object()


class DriverState(Enum):
    INIT = 'init'
    STREAMING = 'streaming'
    DONE = 'done'


def iter_rows(cursor: Any, size: int = 5000) -> Iterator[Any]:
    """Iterate through cursor results in chunks.

    Uses fetchmany() when the cursor has it, plain iteration otherwise.
    Errors raised by the cursor propagate.
    """
    if not hasattr(cursor, 'fetchmany'):
        yield from cursor
        return
    while True:
        chunked = cursor.fetchmany(size)
        if not chunked:
            break
        yield from chunked


class RowDriver:
    """Single-pass conversion of a cursor's rows into column buffers.

    Args:
        cursor: Executed DB-API cursor positioned before the first row
        schema: Column schemas in result-set order
        allocator: Allocator the buffers draw their memory from
        options: Conversion options (batch size and buffer sizing)
        codecs: Optional codecs, one per schema entry (built from the schema
            when omitted)
    """

    def __init__(self, cursor: Any, schema: Sequence[ColumnSchema],
                 allocator: BufferAllocator,
                 options: ConversionOptions | None = None,
                 codecs: Sequence[Codec] | None = None) -> None:
        self.cursor = cursor
        self.schema = list(schema)
        self.allocator = allocator
        self.options = options or ConversionOptions()
        self.codecs = list(codecs) if codecs is not None else [
            codec_for(column.logical_type) for column in self.schema]
        if len(self.codecs) != len(self.schema):
            raise ValueError(f'Got {len(self.codecs)} codecs for {len(self.schema)} columns')
        self.names = [column.name for column in self.schema]
        self.buffers: list[ColumnBuffer] = []
        self.rows_processed = 0
        self.state = DriverState.INIT

    def __repr__(self) -> str:
        return (f'RowDriver(columns={len(self.schema)}, state={self.state.name}, '
                f'rows_processed={self.rows_processed})')

    def expected_row_count(self) -> int:
        """Rows to pre-size the buffers for.

        The row_count_hint option wins; otherwise the cursor rowcount when
        the driver reports one (-1 or None means unknown); otherwise the
        initial_capacity option.
        """
        if self.options.row_count_hint is not None:
            return self.options.row_count_hint
        rowcount = getattr(self.cursor, 'rowcount', None)
        if isinstance(rowcount, int) and rowcount >= 0:
            return rowcount
        return self.options.initial_capacity

    def run(self) -> list[ColumnBuffer]:
        """Consume every row of the cursor.

        Returns
            The filled column buffers, in schema order

        Raises
            ConversionError: A cell could not be converted (column and row set)
            SourceError: The cursor failed or produced a malformed row
            AllocationError: Buffer memory could not be obtained
        """
        if self.state is not DriverState.INIT:
            raise RuntimeError(f'RowDriver already ran (state {self.state.name})')

        try:
            capacity = self.expected_row_count()
            for codec in self.codecs:
                self.buffers.append(codec.allocate(capacity, self.allocator))
            self.state = DriverState.STREAMING
            logger.debug(f'Streaming {len(self.schema)} columns, buffers sized for {capacity} rows')

            rows = iter_rows(self.cursor, self.options.batch_size)
            while True:
                row = self._fetch(rows)
                if row is _END:
                    break
                self._append_row(row)
        except BaseException:
            self.release()
            raise

        self.state = DriverState.DONE
        logger.debug(f'Converted {self.rows_processed} rows')
        return self.buffers

    def _fetch(self, rows: Iterator[Any]) -> Any:
        try:
            return next(rows, _END)
        except DatabaseError:
            raise
        except Exception as e:
            if isinstance(e, DriverError):
                logger.error(f'Cursor failed after {self.rows_processed} rows: {e}')
            raise SourceError(f'Fetching rows failed after row {self.rows_processed}: {e}') from e

    def _cells(self, row: Any) -> Sequence[Any]:
        if isinstance(row, Mapping):
            try:
                return [row[name] for name in self.names]
            except KeyError as e:
                raise SourceError(f'Row {self.rows_processed} has no column {e}') from e
        try:
            width = len(row)
        except TypeError as e:
            raise SourceError(f'Row {self.rows_processed} is not a sequence: {type(row).__name__}') from e
        if width != len(self.schema):
            raise SourceError(
                f'Row {self.rows_processed} has {width} values, expected {len(self.schema)}')
        return row

    def _append_row(self, row: Any) -> None:
        cells = self._cells(row)
        for index, (codec, buffer) in enumerate(zip(self.codecs, self.buffers)):
            try:
                codec.append(cells[index], buffer)
            except ConversionError as e:
                e.column = self.names[index]
                e.column_index = index
                e.row = self.rows_processed
                raise
        self.rows_processed += 1

    def release(self) -> None:
        """Give the regions of unfinished buffers back to the allocator."""
        for buffer in self.buffers:
            buffer.release()
