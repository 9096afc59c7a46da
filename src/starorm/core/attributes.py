"""
Attribute Registry

Declarative attribute specs and the descriptors that expose them as
instance properties.
"""

import logging
from typing import Any, Callable, Dict, Mapping, Optional, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from ..errors import DuplicatePrimaryKeyError

if TYPE_CHECKING:
    from .model import Model

logger = logging.getLogger(__name__)


class AttributeSpec(BaseModel):
    """
    Declaration of a single model attribute.

    Unknown keys are kept as extra fields so plugins can attach their own
    options (``AttributeSpec(column="user_name").column``).
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, extra="allow")

    name: str = ""
    default: Any = None
    required: bool = False
    type: Any = None
    format: Optional[str] = None
    primary: bool = False
    enumerable: bool = True
    filtered: bool = False
    get: Optional[Callable[[Any], Any]] = None

    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set

    @property
    def is_enumerable(self) -> bool:
        return self.enumerable and not self.filtered

    def default_value(self) -> Any:
        """Return the literal default, or call a zero-argument factory."""
        if callable(self.default):
            return self.default()
        return self.default


class AttributeDescriptor:
    """Stored value on an instance, the :class:`AttributeSpec` on the class."""

    def __init__(self, name: str):
        self.name = name

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, instance: Optional["Model"], owner):
        if instance is None:
            return owner.attributes[self.name]
        return instance.get(self.name)

    def __set__(self, instance: "Model", value: Any) -> None:
        instance._write(self.name, value)


def define_attribute(model_type, name: str, params: Optional[Mapping[str, Any]] = None,
                     **kwargs: Any) -> bool:
    """
    Register attribute ``name`` on ``model_type``.

    Args:
        model_type: Model class receiving the attribute
        name: Attribute name
        params: Spec mapping or :class:`AttributeSpec`
        **kwargs: Spec fields, merged over ``params``

    Returns:
        False when the attribute already existed (first definition wins)

    Raises:
        DuplicatePrimaryKeyError: If ``primary`` is set and the type already
            has a primary key
    """
    if name in model_type.attributes:
        return False

    if isinstance(params, AttributeSpec):
        values: Dict[str, Any] = params.model_dump(exclude_unset=True)
    else:
        values = dict(params or {})
    values.update(kwargs)
    values["name"] = name
    spec = AttributeSpec(**values)

    if spec.primary:
        if model_type.primary_key:
            raise DuplicatePrimaryKeyError(model_type.primary_key, model_type)
        model_type.primary_key = name

    model_type.attributes[name] = spec

    # Names that would shadow Model members stay reachable through get()/set()
    if _is_free(model_type, name):
        setattr(model_type, name, AttributeDescriptor(name))
    else:
        logger.debug("%s.%s shadows a model member; use get()/set()", model_type.type, name)

    logger.debug("Defined attribute %s.%s", model_type.type, name)
    return True


def _is_free(model_type, name: str) -> bool:
    return not name.startswith("_") and not hasattr(model_type, name)


__all__ = ["AttributeSpec", "AttributeDescriptor", "define_attribute"]
