"""Configuration module for the Class2Class program store.

This module provides centralized configuration management, including directory
paths, storage keys, invitation and session lifetimes, and API server settings.
All configuration values can be overridden via environment variables.
"""

import os
from pathlib import Path
from typing import FrozenSet, List

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Directory Configuration ---

# Root directory of the project
ROOT_DIR = Path(__file__).parent.parent.parent.resolve()

# Data directory name
DATA_DIR_NAME = os.getenv("DATA_DIR_NAME", "data")
DATA_DIR = ROOT_DIR / DATA_DIR_NAME

# --- Storage Configuration ---

# SQLAlchemy URL of the durable key-value medium
STORAGE_DATABASE_URL: str = os.getenv(
    "STORAGE_DATABASE_URL", f"sqlite:///{DATA_DIR}/class2class.db"
)

# Storage key of the table snapshot; bump the version to invalidate old data
STORAGE_KEY: str = os.getenv("STORAGE_KEY", "class2class_prototype_db_v1")

# Snapshot schema version written into the metadata block
STORAGE_SCHEMA_VERSION: int = 1

# Storage key of the current user session
SESSION_STORAGE_KEY: str = os.getenv("SESSION_STORAGE_KEY", "class2class_session")

# --- Lifecycle Configuration ---

# Days until a freshly sent invitation is considered expired (descriptive only)
INVITATION_EXPIRY_DAYS: int = int(os.getenv("INVITATION_EXPIRY_DAYS", "14"))

# Hours a stored session stays valid after login
SESSION_TTL_HOURS: int = int(os.getenv("SESSION_TTL_HOURS", "24"))

# When true, dangling foreign keys and stale invitation references raise
# instead of being logged.
STRICT_REFERENCES: bool = os.getenv("STRICT_REFERENCES", "false").lower() == "true"

# Institutions hidden from every dashboard rollup (comma-separated ids)
_EXCLUDED_INSTITUTION_IDS_STR: str = os.getenv("EXCLUDED_INSTITUTION_IDS", "")
EXCLUDED_INSTITUTION_IDS: FrozenSet[str] = frozenset(
    value.strip()
    for value in _EXCLUDED_INSTITUTION_IDS_STR.split(",")
    if value.strip()
)

# --- Logging Configuration ---

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# --- API Server Configuration ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))

# CORS allowed origins (comma-separated list)
_CORS_ALLOWED_ORIGINS_STR: str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000",
)
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in _CORS_ALLOWED_ORIGINS_STR.split(",")
    if origin.strip()
]
