"""
IngestService Class - Runs uploads through classify -> build -> store

This module accepts uploaded files (plain exports or ZIP bundles of them)
and loads each one into the DatasetStore slot of the schema it classifies as.
"""

import io
import logging
import zipfile
import zlib
from typing import Iterator, List, Tuple

from elb_dashboard.config import ACCEPTED_EXTENSIONS, ARCHIVE_EXTENSION
from elb_dashboard.models.data_models import IngestResult
from elb_dashboard.services.builders import build_records
from elb_dashboard.services.classifier import SchemaClassifier
from elb_dashboard.services.storage import DatasetStore

logger = logging.getLogger(__name__)


def is_export_name(name: str) -> bool:
    return name.lower().endswith(ACCEPTED_EXTENSIONS)


def decode(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


def iter_archive(content: bytes) -> Iterator[Tuple[str, str]]:
    """
    Yield (name, text) for each .csv/.txt entry of a ZIP archive, in archive order.
    Entries that fail to decompress are logged and skipped.
    """
    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        for info in archive.infolist():
            if info.is_dir() or not is_export_name(info.filename):
                continue
            try:
                data = archive.read(info)
            except (zipfile.BadZipFile, zlib.error, EOFError, RuntimeError, OSError) as exc:
                # RuntimeError covers encrypted entries and NotImplementedError
                # for unsupported compression methods
                logger.warning("Skipping unreadable archive entry %s: %s", info.filename, exc)
                continue
            yield info.filename, decode(data)


class IngestService:
    """
    Loads uploaded exports into the store.
    Responsibilities:
    - Expand ZIP archives into their export entries
    - Classify and build each export
    - Replace the matching store slot
    """

    def __init__(self, dataset_store: DatasetStore):
        self.store = dataset_store

    def ingest_text(self, filename: str, text: str) -> IngestResult:
        """Classify, build and store one export's text"""
        schema = SchemaClassifier.classify(text)
        result = build_records(schema, text)
        self.store.load(schema, result.records, filename)
        return IngestResult(
            filename=filename,
            schema=schema,
            accepted=len(result.records),
            dropped=result.dropped,
        )

    def ingest_upload(self, filename: str, content: bytes) -> List[IngestResult]:
        """
        Ingest one uploaded file. Archives contribute one result per export
        entry; files that are neither exports nor archives are ignored.
        """
        lowered = filename.lower()
        if lowered.endswith(ARCHIVE_EXTENSION):
            try:
                entries = list(iter_archive(content))
            except (zipfile.BadZipFile, zipfile.LargeZipFile, RuntimeError, OSError) as exc:
                logger.warning("Skipping unreadable archive %s: %s", filename, exc)
                return []
            return [self.ingest_text(name, text) for name, text in entries]

        if is_export_name(lowered):
            return [self.ingest_text(filename, decode(content))]

        logger.info("Ignoring %s: not a .csv, .txt or .zip file", filename)
        return []
