"""
Storage layer: the on-disk mirror and its archive.
"""

from .mirror_store import MirrorStore
from .archive import ArchivePackager, ARCHIVE_FILENAME, ARCHIVE_CONTENT_TYPE

__all__ = ['MirrorStore', 'ArchivePackager', 'ARCHIVE_FILENAME', 'ARCHIVE_CONTENT_TYPE']
