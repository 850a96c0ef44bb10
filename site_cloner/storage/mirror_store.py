"""
On-disk mirror storage.
"""

import logging
from pathlib import Path
from typing import Dict, Any, Union

from ..errors import FilesystemError


class MirrorStore:
    """Writes mirrored pages and assets under the output root."""

    def __init__(self, output_root: Union[str, Path]):
        self.output_root = Path(output_root)
        self.logger = logging.getLogger(__name__)
        self.stats = {
            'files_written': 0,
            'total_size_bytes': 0
        }

    async def initialize(self):
        """Create the output root if it does not exist."""
        try:
            self.output_root.mkdir(parents=True, exist_ok=True)
            self.logger.info(f"Mirror storage initialized at {self.output_root}")
        except OSError as e:
            raise FilesystemError(f"Failed to create output directory {self.output_root}: {e}") from e

    def resolve(self, relative_path: str) -> Path:
        """
        Absolute path of a mirror-relative POSIX path.

        Raises:
            FilesystemError: the path would land outside the output root
        """
        root = self.output_root.resolve()
        target = (root / relative_path).resolve()
        if target != root and root not in target.parents:
            raise FilesystemError(f"Refusing to write outside the mirror: {relative_path}")
        return target

    async def write(self, relative_path: str, data: bytes) -> Path:
        """
        Persist one file.

        Args:
            relative_path: Mirror-relative POSIX path from the path mapper
            data: File contents

        Returns:
            Absolute path of the written file

        Raises:
            FilesystemError: directory creation or write failed
        """
        file_path = self.resolve(relative_path)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'wb') as f:
                f.write(data)
        except OSError as e:
            raise FilesystemError(f"Failed to write {file_path}: {e}") from e

        self.stats['files_written'] += 1
        self.stats['total_size_bytes'] += len(data)
        self.logger.debug(f"Wrote {len(data)} bytes to {file_path}")
        return file_path

    def get_stats(self) -> Dict[str, Any]:
        """Get storage statistics."""
        return self.stats.copy()
