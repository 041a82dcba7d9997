"""
formation_hub.domain.enums — Enumerations used across the service.

Keep this module import-clean (stdlib only).
"""

from enum import Enum


class Category(str, Enum):
    """Artifact category as published by the CMS."""
    STARTER  = "starter"
    SEASONAL = "seasonal"


class ArtifactAction(str, Enum):
    """Actions understood by ``roster.reduce_artifacts``."""
    INCREMENT = "increment"
    DECREMENT = "decrement"
