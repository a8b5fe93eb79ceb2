"""
JSON document persistence for group listings.

The whole database is one document, ``{"groups": [...]}``, stored at
``settings.db_path``. Nothing is cached between calls: every read goes to
disk so that restarts and sibling processes are always observed. Appends
are serialized by a process-wide lock and written atomically
(temp file + fsync + os.replace) so a crash never leaves a truncated file.
"""

import json
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import List

from pydantic import ValidationError as PydanticValidationError

from app.config import Settings
from app.core import metrics
from app.core.exceptions import StorageFault
from app.core.logging_config import PerformanceLogger, get_logger
from app.models.group_listing import GroupListing, ListingDocument

logger = get_logger(__name__)

# Shared by every store instance in the process so two stores over the
# same file cannot interleave their read-modify-write cycles.
_write_lock = threading.Lock()


class JsonRecordStore:
    """Read-all / append access to the listings document."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> ListingDocument:
        """
        Read the document, creating it with the empty default when absent.

        Raises:
            StorageFault: the file exists but is unreadable or malformed,
                or the default could not be written.
        """
        start = time.perf_counter()
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            document = ListingDocument()
            self._write(document)
            logger.info("database_created", path=str(self.path))
            return document
        except OSError as e:
            raise StorageFault(
                "Database document could not be read.",
                operation="load",
                detail=f"{self.path}: {e}",
            ) from e

        document = self._parse(raw)
        metrics.store_operation_duration_seconds.labels(operation="load").observe(
            time.perf_counter() - start
        )
        metrics.listings_stored.set(len(document.groups))
        return document

    def all(self) -> List[GroupListing]:
        return self.load().groups

    def count(self) -> int:
        return len(self.all())

    def append(self, record: GroupListing) -> GroupListing:
        """Re-read the document, add ``record`` and write everything back."""
        with _write_lock:
            document = self.load()
            document.groups.append(record)
            with PerformanceLogger("store_append", logger, path=str(self.path)) as perf:
                self._write(document)
            metrics.store_operation_duration_seconds.labels(operation="append").observe(
                perf.duration_ms / 1000
            )
            metrics.listings_stored.set(len(document.groups))

        logger.debug("record_appended", listing_id=record.id, total=len(document.groups))
        return record

    def _parse(self, raw: str) -> ListingDocument:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageFault(
                "Database document is not valid JSON.",
                operation="load",
                detail=f"{self.path}: {e}",
            ) from e

        if not isinstance(data, dict) or not isinstance(data.get("groups", []), list):
            raise StorageFault(
                "Database document has an unexpected shape.",
                operation="load",
                detail=f"{self.path}: expected an object with a 'groups' array",
            )

        try:
            return ListingDocument.model_validate(data)
        except PydanticValidationError as e:
            raise StorageFault(
                "Database document contains invalid records.",
                operation="load",
                detail=f"{self.path}: {e}",
            ) from e

    def _write(self, document: ListingDocument) -> None:
        payload = json.dumps(document.to_document(), ensure_ascii=False, indent=2)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise StorageFault(
                "Database document could not be written.",
                operation="write",
                detail=f"{self.path}: {e}",
            ) from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass


def init_storage(app_settings: Settings) -> JsonRecordStore:
    """
    Prepare the data directory, the uploads directory and the document.

    Must run once before the API accepts requests; a StorageFault here is
    fatal and should abort startup.
    """
    for directory in (app_settings.data_dir, app_settings.uploads_dir):
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageFault(
                "Storage directory could not be created.",
                operation="init",
                detail=f"{directory}: {e}",
            ) from e

    store = JsonRecordStore(app_settings.db_path)
    document = store.load()

    logger.info(
        "storage_initialized",
        db_path=str(app_settings.db_path),
        uploads_dir=str(app_settings.uploads_dir),
        listings=len(document.groups),
    )
    return store
