"""
StarORM Errors

Exception taxonomy for model declaration and lifecycle failures.

Structural errors (a second primary key, an undeclared relation, a missing
adapter capability) are raised synchronously. Runtime errors such as
:class:`ValidationError` are never raised by the lifecycle methods; they
are delivered as the first argument of the operation's callback.
"""

from typing import Any, List, Optional


class ModelError(Exception):
    """Base exception for all model errors"""

    def __init__(self, message: str, model: Any = None):
        super().__init__(message)
        self.message = message
        self.model = model


class DuplicatePrimaryKeyError(ModelError):
    """Raised when a second attribute is declared as primary key"""

    def __init__(self, existing: str, model: Any = None):
        super().__init__(f"Primary attribute already exists: {existing}", model)
        self.existing = existing


class UndefinedPrimaryKeyError(ModelError):
    """Raised when the primary key is used on a type that declares none"""

    def __init__(self, model: Any = None):
        super().__init__("Primary key has not been defined.", model)


class ValidationError(ModelError):
    """Save attempted on an invalid instance"""

    def __init__(self, model: Any = None, errors: Optional[List[Any]] = None):
        super().__init__("Validations failed.", model)
        self.errors = list(errors or [])


class UnknownRelationError(ModelError):
    """Raised when accessing a relation that was never declared"""

    def __init__(self, name: str, model: Any = None):
        super().__init__(f'Relation "{name}" not defined.', model)
        self.name = name


class DuplicateRelationError(ModelError):
    """Raised when a role name is declared twice on the same owner type"""

    def __init__(self, name: str, model: Any = None):
        super().__init__(f'Relation "{name}" is already defined.', model)
        self.name = name


class RelationKeyConflictError(ModelError):
    """Raised when a join type would store both sides under one key"""

    def __init__(self, key: str, model: Any = None):
        super().__init__(f"Join keys must differ: {key}", model)
        self.key = key


class NoAdapterSupportError(ModelError):
    """Raised when a relation operation has no matching adapter capability"""

    def __init__(self, capability: str, model: Any = None):
        super().__init__(
            f"No storage adapter support for this method: {capability}", model
        )
        self.capability = capability


__all__ = [
    "ModelError",
    "DuplicatePrimaryKeyError",
    "UndefinedPrimaryKeyError",
    "ValidationError",
    "UnknownRelationError",
    "DuplicateRelationError",
    "RelationKeyConflictError",
    "NoAdapterSupportError",
]
