"""Zip container holding the XML parts of an OpenDocument file."""

from __future__ import annotations

import logging
import os
import tempfile
import zipfile
from pathlib import Path

from documatic.exceptions import NotFoundError

logger = logging.getLogger(__name__)

MIMETYPE_ENTRY = "mimetype"


class OpenDocumentPackage:
    """In-memory view of an OpenDocument archive.

    Entries are loaded when the package is opened and mutated in memory.
    :meth:`commit` writes them back to ``path``; the original entry order and
    per-entry compression are preserved so the ``mimetype`` entry stays first
    and uncompressed.
    """

    def __init__(self, path: Path, entries: dict[str, bytes], infos: dict[str, zipfile.ZipInfo]):
        self.path = path
        self._entries = entries
        self._infos = infos
        self._committed = dict(entries)
        self.closed = False

    @classmethod
    def open(cls, path) -> "OpenDocumentPackage":
        """Load every entry of the archive at ``path``."""

        path = Path(path)
        if not path.is_file():
            raise NotFoundError(f"Template archive not found: {path}")
        try:
            with zipfile.ZipFile(path) as archive:
                infos = {info.filename: info for info in archive.infolist()}
                entries = {name: archive.read(name) for name in infos}
        except zipfile.BadZipFile as exc:
            raise NotFoundError(f"Not a valid template archive: {path}") from exc

        logger.debug("Loaded %d entries from %s", len(entries), path.name)
        return cls(path, entries, infos)

    # ------------------------------------------------------------------
    # Entry access

    def names(self) -> list[str]:
        return list(self._entries)

    def has_entry(self, name: str) -> bool:
        """Return ``True`` if ``name`` is an entry or a directory holding entries."""

        if name in self._entries:
            return True
        prefix = name.rstrip("/") + "/"
        return any(entry.startswith(prefix) for entry in self._entries)

    def read(self, name: str) -> bytes:
        return self._entries[name]

    def read_text(self, name: str) -> str:
        return self._entries[name].decode("utf-8")

    def write(self, name: str, data: bytes | str) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._entries[name] = data

    def mkdir(self, name: str) -> None:
        """Create a directory entry; a no-op if it already exists."""

        name = name.rstrip("/") + "/"
        self._entries.setdefault(name, b"")

    def add_file(self, name: str, source) -> None:
        """Copy the file at ``source`` into the archive as ``name``."""

        self.write(name, Path(source).read_bytes())

    def remove(self, name: str) -> None:
        """Remove ``name``; raises ``KeyError`` if there is no such entry."""

        del self._entries[name]
        self._infos.pop(name, None)

    def discard(self, name: str) -> None:
        """Remove ``name`` if it is present."""

        if name in self._entries:
            self.remove(name)

    # ------------------------------------------------------------------
    # Persistence

    @property
    def modified(self) -> bool:
        if self._entries.keys() != self._committed.keys():
            return True
        return any(data is not self._committed[name] for name, data in self._entries.items())

    def commit(self) -> None:
        """Write the entries back to ``path`` if anything changed."""

        if not self.modified:
            return

        fd, temp_name = tempfile.mkstemp(prefix=".documatic-", suffix=".tmp", dir=self.path.parent)
        os.close(fd)
        try:
            with zipfile.ZipFile(temp_name, "w") as archive:
                for name in self._ordered_names():
                    archive.writestr(self._entry_info(name), self._entries[name])
            os.replace(temp_name, self.path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

        self._committed = dict(self._entries)
        logger.debug("Wrote %d entries to %s", len(self._entries), self.path.name)

    def close(self) -> None:
        if self.closed:
            return
        self.commit()
        self.closed = True

    def _ordered_names(self) -> list[str]:
        names = list(self._entries)
        if MIMETYPE_ENTRY in names:
            names.remove(MIMETYPE_ENTRY)
            names.insert(0, MIMETYPE_ENTRY)
        return names

    def _entry_info(self, name: str) -> zipfile.ZipInfo:
        original = self._infos.get(name)
        if original is not None:
            info = zipfile.ZipInfo(name, date_time=original.date_time)
            info.compress_type = original.compress_type
            info.external_attr = original.external_attr
            return info

        info = zipfile.ZipInfo(name)
        if name == MIMETYPE_ENTRY or name.endswith("/"):
            info.compress_type = zipfile.ZIP_STORED
        else:
            info.compress_type = zipfile.ZIP_DEFLATED
        if name.endswith("/"):
            info.external_attr = 0o40755 << 16 | 0x10
        else:
            info.external_attr = 0o644 << 16
        return info
