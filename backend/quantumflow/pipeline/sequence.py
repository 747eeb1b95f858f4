"""
QuantumFlow — Ordered image store.

Order is data: position in the list is page order in the PDF. Records get a
synthetic id at append time; two uploads called ``scan.jpg`` are two distinct
records. While a conversion runs the sequence is frozen and every mutation
raises SequenceLockedError.
"""

from __future__ import annotations

import itertools
from contextlib import contextmanager
from typing import Generator, Iterator

from quantumflow.errors import InvalidMoveError, RecordNotFoundError, SequenceLockedError
from quantumflow.models.image import ImageFormat, ImageRecord


class ImageSequence:
    def __init__(self, max_images: int = 20):
        self.max_images = max_images
        self._records: list[ImageRecord] = []
        self._ids = itertools.count(1)
        self._frozen = False

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ImageRecord]:
        return iter(tuple(self._records))

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def remaining_capacity(self) -> int:
        return max(0, self.max_images - len(self._records))

    def _check_mutable(self) -> None:
        if self._frozen:
            raise SequenceLockedError()

    def append(
        self,
        name: str,
        data: bytes,
        fmt: ImageFormat,
        pixel_width: int,
        pixel_height: int,
    ) -> ImageRecord:
        self._check_mutable()
        record = ImageRecord(
            id=next(self._ids),
            name=name,
            data=data,
            format=fmt,
            pixel_width=pixel_width,
            pixel_height=pixel_height,
        )
        self._records.append(record)
        return record

    def get(self, record_id: int) -> ImageRecord:
        return self._records[self.index_of(record_id)]

    def index_of(self, record_id: int) -> int:
        for i, record in enumerate(self._records):
            if record.id == record_id:
                return i
        raise RecordNotFoundError(record_id)

    def remove(self, record_id: int) -> ImageRecord:
        self._check_mutable()
        return self._records.pop(self.index_of(record_id))

    def move(self, old_index: int, new_index: int) -> None:
        """Take the record at old_index out and insert it at new_index."""
        self._check_mutable()
        n = len(self._records)
        if not (0 <= old_index < n and 0 <= new_index < n):
            raise InvalidMoveError(old_index, new_index, n)
        if old_index == new_index:
            return
        record = self._records.pop(old_index)
        self._records.insert(new_index, record)

    def clear(self) -> int:
        self._check_mutable()
        removed = len(self._records)
        self._records.clear()
        return removed

    def snapshot(self) -> tuple[ImageRecord, ...]:
        return tuple(self._records)

    def freeze(self) -> None:
        self._frozen = True

    def thaw(self) -> None:
        self._frozen = False

    @contextmanager
    def frozen(self) -> Generator[tuple[ImageRecord, ...], None, None]:
        """Lock the sequence for the duration of a run and hand out its snapshot."""
        self.freeze()
        try:
            yield self.snapshot()
        finally:
            self.thaw()
