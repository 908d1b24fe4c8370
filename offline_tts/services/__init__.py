from .acquisition import AcquisitionManager, find_archive_entries
from .voice_controller import OfflineVoiceController

__all__ = [
    "AcquisitionManager",
    "OfflineVoiceController",
    "find_archive_entries",
]
