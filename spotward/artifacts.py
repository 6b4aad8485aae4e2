"""Script bundle staging: object store -> local directory."""

from __future__ import annotations

import shutil
import tempfile
import zipfile
from pathlib import Path

from loguru import logger

from spotward.exceptions import ExtractionFailedError
from spotward.types import ObjectStore

log = logger.bind(component="artifacts")

CHUNK_SIZE = 1024 * 1024


class ArtifactFetcher:
    """Streams a zip bundle to disk and extracts it over the staging path.

    The body is copied in fixed-size chunks to a temporary file, never held
    in memory as a whole.
    """

    def __init__(self, store: ObjectStore, chunk_size: int = CHUNK_SIZE) -> None:
        self._store = store
        self._chunk_size = chunk_size

    def fetch(self, bucket: str, key: str, destination: str | Path) -> Path:
        dest = Path(destination)
        with tempfile.TemporaryFile() as spool:
            body = self._store.open(bucket, key)
            try:
                shutil.copyfileobj(body, spool, self._chunk_size)
            except OSError as e:
                raise ExtractionFailedError(f"Stream error reading {key}: {e}") from e
            finally:
                body.close()
            spool.seek(0)
            self._extract(spool, dest)

        log.info(f"Downloaded s3 object {key} to {dest}")
        return dest

    @staticmethod
    def _extract(archive, dest: Path) -> None:
        try:
            with zipfile.ZipFile(archive) as zf:
                root = dest.resolve()
                for member in zf.namelist():
                    target = (root / member).resolve()
                    if not target.is_relative_to(root):
                        raise ExtractionFailedError(f"Unsafe path in archive: {member}")
                if dest.exists():
                    shutil.rmtree(dest)
                dest.mkdir(parents=True)
                zf.extractall(dest)
        except zipfile.BadZipFile as e:
            raise ExtractionFailedError(f"Malformed archive: {e}") from e
