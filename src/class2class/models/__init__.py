from .storage_entry import StorageEntryModel

__all__ = ["StorageEntryModel"]
