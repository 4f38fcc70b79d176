"""Dependency injection module for FastAPI.

This module provides dependency injection functions for FastAPI routes. The
entity store is created once per process and shared by every request.
"""

from typing import Annotated, Optional

from fastapi import Depends

from class2class.core.database import get_session_factory
from class2class.utils import entity_store
from class2class.utils import invitation_manager
from class2class.utils import program_manager
from class2class.utils import session_store
from class2class.utils.storage import KeyValueStorage

# Process-wide store instance
_store_instance: Optional[entity_store.EntityStore] = None


def get_storage() -> KeyValueStorage:
    """Get the key-value medium backed by the configured database."""
    return KeyValueStorage(get_session_factory())


def get_store() -> entity_store.EntityStore:
    """Get EntityStore singleton instance.

    Returns:
        EntityStore instance (singleton).
    """
    global _store_instance
    if _store_instance is None:
        _store_instance = entity_store.EntityStore(get_storage())
    return _store_instance


def get_invitation_manager(
    store: entity_store.EntityStore = Depends(get_store),
) -> invitation_manager.InvitationManager:
    return invitation_manager.InvitationManager(store)


def get_program_manager(
    store: entity_store.EntityStore = Depends(get_store),
) -> program_manager.ProgramManager:
    return program_manager.ProgramManager(store)


def get_session_store(
    store: entity_store.EntityStore = Depends(get_store),
) -> session_store.SessionStore:
    """Get SessionStore sharing the medium of the entity store."""
    return session_store.SessionStore(store.storage)


# Type aliases for dependency injection
EntityStoreDep = Annotated[entity_store.EntityStore, Depends(get_store)]
InvitationManagerDep = Annotated[
    invitation_manager.InvitationManager, Depends(get_invitation_manager)
]
ProgramManagerDep = Annotated[
    program_manager.ProgramManager, Depends(get_program_manager)
]
SessionStoreDep = Annotated[session_store.SessionStore, Depends(get_session_store)]
