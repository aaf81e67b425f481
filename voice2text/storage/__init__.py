"""
Storage module - Temporary on-disk staging for uploads.
"""

from voice2text.storage.temp_store import TemporaryFileStore, UploadedAudio, get_temp_store

__all__ = ["TemporaryFileStore", "UploadedAudio", "get_temp_store"]
