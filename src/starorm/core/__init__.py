"""
StarORM Core Module

Attribute registry, validation pipeline, model state machine, lifecycle
and relation traversal. Storage is reached only through adapters.
"""

from .attributes import AttributeSpec, AttributeDescriptor, define_attribute
from .collection import Collection, hydrate
from .model import Model, create_model
from .relations import (
    BoundRelation,
    RelationAccessor,
    RelationKind,
    RelationRegistry,
    RelationSpec,
)
from .validation import BUILTIN_VALIDATORS, FORMATS, FieldError, validate

__all__ = [
    "AttributeSpec",
    "AttributeDescriptor",
    "define_attribute",
    "Collection",
    "hydrate",
    "Model",
    "create_model",
    "BoundRelation",
    "RelationAccessor",
    "RelationKind",
    "RelationRegistry",
    "RelationSpec",
    "BUILTIN_VALIDATORS",
    "FORMATS",
    "FieldError",
    "validate",
]
