"""Zip and single-file export of record buffers.

Blocking file and archive work lives here as plain functions; the action
orchestrator runs them through an executor.
"""

from __future__ import annotations

import zipfile
from collections.abc import Iterable
from io import BytesIO
from pathlib import Path

from catalogstudio.errors import StudioConversionError
from catalogstudio.models import ImageRecord, ZipExportResult
from catalogstudio.utils.naming import dedupe, export_filename

DEFAULT_ARCHIVE_NAME = "catalog_export.zip"


def archive_entries(records: Iterable[ImageRecord]) -> tuple[list[tuple[str, bytes]], int]:
    """Pair each record's buffer with a unique entry name.

    Returns the entries in record order and the number of records skipped
    for lacking a buffer.
    """
    entries: list[tuple[str, bytes]] = []
    taken: set[str] = set()
    skipped = 0
    for record in records:
        if record.encoded_buffer is None:
            skipped += 1
            continue
        name = dedupe(export_filename(record.id, record.suggested_name), taken)
        taken.add(name)
        entries.append((name, record.encoded_buffer))
    return entries, skipped


def _write_archive(target: BytesIO | Path, entries: list[tuple[str, bytes]]) -> None:
    with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_STORED) as archive:
        for name, data in entries:
            archive.writestr(name, data)


def build_zip(records: Iterable[ImageRecord]) -> bytes:
    entries, _ = archive_entries(records)
    out = BytesIO()
    _write_archive(out, entries)
    return out.getvalue()


def write_zip(records: Iterable[ImageRecord], destination: str | Path) -> ZipExportResult:
    """Write the archive to *destination*.

    A directory destination gets :data:`DEFAULT_ARCHIVE_NAME` inside it.
    """
    path = Path(destination)
    if path.is_dir():
        path = path / DEFAULT_ARCHIVE_NAME
    entries, skipped = archive_entries(records)
    path.parent.mkdir(parents=True, exist_ok=True)
    _write_archive(path, entries)
    return ZipExportResult(path=path, files=[name for name, _ in entries], skipped=skipped)


def write_single(record: ImageRecord, directory: str | Path) -> Path:
    if record.encoded_buffer is None:
        raise StudioConversionError(
            message=f"Record {record.id} has no image to download",
            context={"record_id": record.id},
        )
    folder = Path(directory)
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / export_filename(record.id, record.suggested_name)
    path.write_bytes(record.encoded_buffer)
    return path
