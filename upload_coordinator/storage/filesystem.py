"""
Local filesystem blob store adapter
"""
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, Iterator

from ..core.exceptions import StoreIOError
from .base import BlobStore

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 1024 * 1024
TEMP_SUFFIX = ".partial"
NAME_MAX = 255


class FilesystemBlobStore(BlobStore):
    """
    Blob store backed by a directory tree.

    Each key maps to a file below `root` ("a/b/c" -> root/a/b/c). Writes land
    in a temp file in the same directory and are moved into place with
    os.replace, so readers and listings never see a half-written object.
    """

    def __init__(self, root: str):
        self.root = Path(root).resolve()
        logger.info(f"Filesystem blob store at {self.root}")

    def ensure_bucket(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreIOError("ensure_bucket", str(self.root), e) from e

    def _path(self, key: str) -> Path:
        segments = key.split("/")
        if any(s in ("", ".", "..") for s in segments) or key.endswith(TEMP_SUFFIX):
            raise StoreIOError("resolve", key, ValueError("invalid key for filesystem store"))
        if any(len(s.encode("utf-8")) > NAME_MAX for s in segments):
            raise StoreIOError("resolve", key, ValueError(f"key segment longer than {NAME_MAX} bytes"))
        return self.root.joinpath(*segments)

    def put(self, key: str, stream: BinaryIO, length: int = -1) -> None:
        path = self._path(key)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=path.parent, prefix=".", suffix=TEMP_SUFFIX, delete=False
            ) as tmp:
                tmp_name = tmp.name
                shutil.copyfileobj(stream, tmp, COPY_BUFFER_SIZE)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise StoreIOError("put", key, e) from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

    def get(self, key: str) -> BinaryIO:
        path = self._path(key)
        try:
            return open(path, "rb")
        except OSError as e:
            logger.error(f"Failed to open {path}: {e}")
            raise StoreIOError("get", key, e) from e

    def list(self, prefix: str) -> Iterator[str]:
        # Walk only the deepest directory the prefix fully names
        base_dir, _, _ = prefix.rpartition("/")
        start = self.root.joinpath(*base_dir.split("/")) if base_dir else self.root
        try:
            if not start.is_dir():
                return
            for dirpath, dirnames, filenames in os.walk(start):
                dirnames.sort()
                for name in sorted(filenames):
                    if name.endswith(TEMP_SUFFIX):
                        continue
                    full = Path(dirpath, name)
                    key = full.relative_to(self.root).as_posix()
                    if key.startswith(prefix):
                        yield key
        except OSError as e:
            logger.error(f"Failed to list {prefix}: {e}")
            raise StoreIOError("list", prefix, e) from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to delete {path}: {e}")
            raise StoreIOError("delete", key, e) from e
        self._prune_empty_dirs(path.parent)

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def _prune_empty_dirs(self, directory: Path) -> None:
        while directory != self.root and self.root in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                # Not empty, or a concurrent writer just created something in it
                return
            directory = directory.parent
