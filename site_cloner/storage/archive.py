"""
Zip packaging of a finished mirror.
"""

import logging
import zipfile
from pathlib import Path
from typing import Iterable, Optional, Union

from ..errors import PackagingError


ARCHIVE_FILENAME = 'cloned-site.zip'
ARCHIVE_CONTENT_TYPE = 'application/zip'


class ArchivePackager:
    """
    Streams a directory tree into one zip file.

    Files are added one at a time with ``ZipFile.write``, which copies in
    chunks, so the tree is never held in memory.
    """

    def __init__(self, compression_level: int = 9):
        self.compression_level = compression_level
        self.logger = logging.getLogger(__name__)

    def package(self, output_root: Union[str, Path], archive_path: Union[str, Path],
                files: Optional[Iterable[str]] = None) -> Path:
        """
        Write the mirror under ``output_root`` into ``archive_path``.

        With ``files`` given, only those root-relative POSIX paths are
        archived; otherwise every file under the root is. Arcnames are
        relative to the root and use '/' separators.

        Raises:
            PackagingError: the root is missing, the archive would be inside
                the root, or writing failed
        """
        root = Path(output_root).resolve()
        archive_path = Path(archive_path).resolve()

        if not root.is_dir():
            raise PackagingError(f"Mirror directory does not exist: {root}")
        if root in archive_path.parents:
            raise PackagingError(f"Archive {archive_path} must not be inside the mirror {root}")

        file_count = 0
        try:
            archive_path.parent.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(archive_path, 'w', compression=zipfile.ZIP_DEFLATED,
                                 compresslevel=self.compression_level) as zf:
                for file_path in self._collect(root, files):
                    if not file_path.is_file():
                        continue
                    zf.write(file_path, arcname=file_path.relative_to(root).as_posix())
                    file_count += 1
        except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            if archive_path.exists():
                archive_path.unlink()
            raise PackagingError(f"Failed to write archive {archive_path}: {e}") from e

        self.logger.info(f"Packaged {file_count} files into {archive_path} "
                         f"({archive_path.stat().st_size} bytes)")
        return archive_path

    @staticmethod
    def _collect(root: Path, files: Optional[Iterable[str]]):
        if files is None:
            return sorted(root.rglob('*'))
        return [root / name for name in sorted(set(files))]
