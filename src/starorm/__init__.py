"""
StarORM - Event-Driven Model Layer

Declarative model types with typed attributes, validation, relations and
a save/remove lifecycle. Persistence is delegated to pluggable storage
adapters through continuation callbacks.
"""

from .adapters import Adapter, RelatedAdapter, MemoryStore
from .aio import deferred
from .config import Environment, Settings, configure_logging, get_settings, set_settings
from .core import (
    AttributeSpec,
    BoundRelation,
    Collection,
    FieldError,
    Model,
    RelationKind,
    RelationSpec,
    create_model,
)
from .errors import (
    DuplicatePrimaryKeyError,
    DuplicateRelationError,
    ModelError,
    NoAdapterSupportError,
    RelationKeyConflictError,
    UndefinedPrimaryKeyError,
    UnknownRelationError,
    ValidationError,
)
from .events import Emitter

__version__ = "0.1.0"

__all__ = [
    # Core
    "Model",
    "create_model",
    "AttributeSpec",
    "Collection",
    "FieldError",
    "RelationKind",
    "RelationSpec",
    "BoundRelation",

    # Adapters
    "Adapter",
    "RelatedAdapter",
    "MemoryStore",

    # Events & async
    "Emitter",
    "deferred",

    # Configuration
    "Environment",
    "Settings",
    "configure_logging",
    "get_settings",
    "set_settings",

    # Errors
    "ModelError",
    "DuplicatePrimaryKeyError",
    "DuplicateRelationError",
    "RelationKeyConflictError",
    "NoAdapterSupportError",
    "UndefinedPrimaryKeyError",
    "UnknownRelationError",
    "ValidationError",
]
