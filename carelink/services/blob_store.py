import logging
import os
import re
import shutil

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    pass


def safe_filename(filename: str | None) -> str:
    if not filename or not filename.strip():
        return "file"
    return re.sub(r"[^a-zA-Z0-9_.-]", "_", os.path.basename(filename.strip()))


class LocalBlobStore:
    """Bucketed file storage rooted at a directory on disk.

    Object paths are relative to their bucket and always use forward slashes.
    """

    def __init__(self, root: str):
        self.root = root

    def _resolve(self, bucket: str, path: str) -> str:
        bucket_dir = os.path.abspath(os.path.join(self.root, bucket))
        full = os.path.abspath(os.path.join(bucket_dir, path))
        if full != bucket_dir and not full.startswith(bucket_dir + os.sep):
            raise BlobStoreError(f"Path escapes bucket: {path}")
        return full

    def upload(self, bucket: str, path: str, data: bytes, upsert: bool = False) -> str:
        full = self._resolve(bucket, path)
        if os.path.exists(full) and not upsert:
            raise BlobStoreError(f"Object already exists: {path}")
        try:
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, "wb") as buffer:
                buffer.write(data)
        except OSError as exc:
            raise BlobStoreError(str(exc)) from exc
        logger.info("Stored blob bucket=%s path=%s size=%s", bucket, path, len(data))
        return path

    def exists(self, bucket: str, path: str) -> bool:
        return os.path.isfile(self._resolve(bucket, path))

    def read(self, bucket: str, path: str) -> bytes:
        try:
            with open(self._resolve(bucket, path), "rb") as fh:
                return fh.read()
        except OSError as exc:
            raise BlobStoreError(str(exc)) from exc

    def delete_prefix(self, bucket: str, prefix: str) -> None:
        """Remove every object under ``prefix``. Missing prefixes are ignored."""
        target = self._resolve(bucket, prefix)
        if os.path.isdir(target):
            shutil.rmtree(target)
        elif os.path.isfile(target):
            os.remove(target)

    def local_path(self, bucket: str, path: str) -> str:
        """Filesystem path of an existing object, for streaming it back to an authorised caller."""
        full = self._resolve(bucket, path)
        if not os.path.isfile(full):
            raise BlobStoreError(f"Object not found: {path}")
        return full
