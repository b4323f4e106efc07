"""File-backed ledger storage.

Ledger files live at ``<ledger_dir>/<name>.ledger``.  The store is a plain
key-value layer keyed by file name: it reads and writes text and hands it
to the parser, nothing more.  Transactions are never stored; they are
parsed from the file content on demand (parse-and-replace).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from ledger_manager.models import ParseResult
from ledger_manager.parsers.ledger import parse_ledger_result

logger = logging.getLogger(__name__)

LEDGER_SUFFIX = ".ledger"

_VALID_NAME_RE = re.compile(r"[\w][\w.\- ]*")


class LedgerStore:
    """Key-value access to the ledger files in one directory.

    Args:
        directory: Directory holding ``*.ledger`` files.  Created on the
            first write if it does not exist.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def path_for(self, name: str) -> Path:
        """Return the file path for ledger *name*.

        Raises:
            ValueError: If *name* is empty or contains path separators.
        """
        if name.endswith(LEDGER_SUFFIX):
            name = name[: -len(LEDGER_SUFFIX)]
        if not _VALID_NAME_RE.fullmatch(name):
            raise ValueError(f"Invalid ledger file name: {name!r}")
        return self.directory / f"{name}{LEDGER_SUFFIX}"

    def list_files(self) -> list[str]:
        """Return the names of all ledger files, sorted."""
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob(f"*{LEDGER_SUFFIX}") if p.is_file())

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def read(self, name: str) -> str:
        """Return the content of ledger *name*.

        Raises:
            KeyError: If the file does not exist.
        """
        path = self.path_for(name)
        if not path.is_file():
            raise KeyError(name)
        return path.read_text(encoding="utf-8-sig")

    def save(self, name: str, content: str) -> Path:
        """Write *content* to ledger *name*, replacing what was there."""
        path = self.path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.debug("Saved ledger file: %s", path)
        return path

    def delete(self, name: str) -> None:
        """Remove ledger *name*.

        Raises:
            KeyError: If the file does not exist.
        """
        path = self.path_for(name)
        if not path.is_file():
            raise KeyError(name)
        path.unlink()
        logger.debug("Deleted ledger file: %s", path)

    def append(self, name: str, text: str) -> Path:
        """Append ledger *text* to file *name*, creating it if needed.

        A blank line is inserted first when the existing content does not
        already end with one, so the appended entries start a new block.
        """
        existing = self.read(name) if self.exists(name) else ""
        if existing and not existing.endswith("\n\n"):
            existing = existing.rstrip("\n") + "\n\n"
        return self.save(name, existing + text)

    def parse(self, name: str) -> ParseResult:
        """Parse ledger *name*; every transaction gets ``file_id == name``.

        Raises:
            KeyError: If the file does not exist.
        """
        return parse_ledger_result(self.read(name), file_id=self.path_for(name).stem)
