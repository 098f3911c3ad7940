# apptbook/db/csvfile.py

"""
Whole-file CSV persistence.

Every table is read in full and written in full. Writes go to a temporary
file in the same directory which is fsynced and then moved over the target
with os.replace, so readers only ever see the old or the new file.

Files are decoded as UTF-8 with an optional BOM. Undecodable bytes survive
as lone surrogates so the row they sit in can be set aside intact.

Rows are parsed once at load time. A row with the wrong number of fields,
invalid UTF-8, a value that fails validation or a repeated key is
quarantined: it is logged, kept out of the returned records and moved to a
side file on the next persist. A header this tool never wrote stops the
load instead.
"""
from __future__ import annotations

import contextlib
import csv
import io
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Generic, Hashable, Iterable, Iterator, Optional, Sequence, TypeVar

from pydantic import ValidationError

from apptbook.core.errors import StoreFormatError, invalid_input_from
from apptbook.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# utf-8-sig drops a leading BOM; surrogateescape keeps invalid bytes round-trippable
READ_ENCODING = "utf-8-sig"
ENCODING_ERRORS = "surrogateescape"


@dataclass(frozen=True)
class RejectedRow:
    line_no: int
    raw: str
    reason: str
    cells: tuple[str, ...] = ()


def open_for_read(path: Path):
    return open(path, newline="", encoding=READ_ENCODING, errors=ENCODING_ERRORS)


def is_undecodable(row: Sequence[str]) -> bool:
    """True when a cell carries bytes that were not valid UTF-8."""
    return any("\udc80" <= ch <= "\udcff" for cell in row for ch in cell)


def _describe(e: Exception) -> str:
    if isinstance(e, ValidationError):
        return str(invalid_input_from(e))
    return str(e).splitlines()[0] if str(e) else type(e).__name__


def _render_line(row: Sequence[str]) -> str:
    buf = io.StringIO()
    csv.writer(buf, lineterminator="").writerow(row)
    return buf.getvalue()


def atomic_write_rows(path: Path, header: Sequence[str], rows: Iterable[Sequence[str]]) -> None:
    """Write header + rows to a temp file and move it over `path`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", newline="", encoding="utf-8") as fh:
            writer = csv.writer(fh, lineterminator="\n")
            writer.writerow(header)
            writer.writerows(rows)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


class CsvRecordFile(Generic[T]):
    """One delimited file with a header row, mapped to typed records."""

    def __init__(
        self,
        path: Path,
        fields: Sequence[str],
        parse: Callable[[dict[str, str]], T],
        serialize: Callable[[T], Sequence[str]],
        key: Optional[Callable[[T], Hashable]] = None,
        quarantine_suffix: str = ".rejected",
        legacy_fields: Sequence[Sequence[str]] = (),
    ):
        self.path = Path(path)
        self.fields = list(fields)
        self.accepted_headers = [self.fields] + [list(f) for f in legacy_fields]
        self._parse = parse
        self._serialize = serialize
        self._key = key
        self.quarantine_path = self.path.with_name(self.path.name + quarantine_suffix)
        self.rejects: list[RejectedRow] = []

    def ensure_exists(self) -> None:
        if not self.path.exists():
            atomic_write_rows(self.path, self.fields, [])
            logger.info("store_created", path=str(self.path))

    def signature(self) -> Optional[tuple[int, int]]:
        """(mtime_ns, size) of the file, or None when it is missing."""
        try:
            st = self.path.stat()
        except FileNotFoundError:
            return None
        return st.st_mtime_ns, st.st_size

    def load(self) -> list[T]:
        self.ensure_exists()
        records: list[T] = []
        rejects: list[RejectedRow] = []
        seen: set = set()

        with open_for_read(self.path) as fh:
            reader = csv.reader(fh)
            header = next(reader, None)
            if header is None:
                # Empty file: no header, no rows
                self.rejects = []
                return records
            if header not in self.accepted_headers:
                raise StoreFormatError("Unrecognised header in data file",
                                       path=str(self.path), header=_render_line(header))

            for row in reader:
                line_no = reader.line_num
                if not row or not any(cell.strip() for cell in row):
                    continue
                if is_undecodable(row):
                    rejects.append(RejectedRow(line_no, _render_line(row),
                                               "line is not valid UTF-8", tuple(row)))
                    continue
                if len(row) != len(header):
                    rejects.append(RejectedRow(line_no, _render_line(row),
                                               f"expected {len(header)} fields, got {len(row)}",
                                               tuple(row)))
                    continue
                try:
                    record = self._parse(dict(zip(header, row)))
                except (KeyError, ValueError) as e:
                    rejects.append(RejectedRow(line_no, _render_line(row), _describe(e), tuple(row)))
                    continue
                if self._key is not None:
                    k = self._key(record)
                    if k in seen:
                        rejects.append(RejectedRow(line_no, _render_line(row),
                                                   f"duplicate key {k}", tuple(row)))
                        continue
                    seen.add(k)
                records.append(record)

        for rej in rejects:
            logger.warning("store_row_quarantined", path=str(self.path),
                           line=rej.line_no, error=rej.reason)
        self.rejects = rejects
        return records

    def quarantined(self) -> Iterator[Sequence[str]]:
        """Cells of every row set aside, whether pending or already moved out."""
        for rej in self.rejects:
            yield rej.cells
        try:
            fh = open(self.quarantine_path, newline="", encoding="utf-8", errors=ENCODING_ERRORS)
        except FileNotFoundError:
            return
        with fh:
            yield from csv.reader(fh)

    def persist(self, records: Iterable[T]) -> None:
        """Replace the file with `records`; pending rejects move to the quarantine file."""
        atomic_write_rows(self.path, self.fields, (self._serialize(r) for r in records))
        if self.rejects:
            with open(self.quarantine_path, "a", encoding="utf-8", errors=ENCODING_ERRORS) as fh:
                for rej in self.rejects:
                    fh.write(f"{rej.raw}\n")
            logger.warning("store_rows_moved_to_quarantine", path=str(self.quarantine_path),
                           count=len(self.rejects))
            self.rejects = []


def held_ids(rows: Iterable[Sequence[str]]) -> set[int]:
    """Integer ids in the first column of quarantined rows."""
    ids = set()
    for cells in rows:
        if cells and cells[0].strip().isdecimal():
            ids.add(int(cells[0]))
    return ids
