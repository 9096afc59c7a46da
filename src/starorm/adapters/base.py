"""
StarORM Adapter Layer - Capability Tables

Storage adapters are tables of optional callables. A model type looks an
operation up on its ``adapter`` and falls back to a no-op default when the
capability is absent, except for relation reads which raise
:class:`~starorm.errors.NoAdapterSupportError`.

Every callable receives its receiver explicitly as the first argument:
the model type for ``find``/``find_all``/``count``/``remove_all``, the
model instance for ``save``/``remove`` and for all ``related`` operations.
The last argument is always the ``done(err, result)`` continuation.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

Operation = Optional[Callable[..., Any]]


class _CapabilityTable:
    """Attribute-per-capability table with ``None`` meaning unsupported"""

    CAPABILITIES: Tuple[str, ...] = ()

    def __init__(self, **capabilities: Operation):
        for name in self.CAPABILITIES:
            object.__setattr__(self, name, None)
        self.update(**capabilities)

    def __setattr__(self, name: str, value: Any) -> None:
        if not self._accepts(name):
            raise AttributeError(
                f"{type(self).__name__} has no capability '{name}'"
            )
        object.__setattr__(self, name, value)

    def _accepts(self, name: str) -> bool:
        if name in self.CAPABILITIES or name.startswith("_"):
            return True
        # properties such as Adapter.related
        return isinstance(getattr(type(self), name, None), property)

    def update(self, **capabilities: Operation) -> "_CapabilityTable":
        """Install several capabilities at once."""
        for name, operation in capabilities.items():
            setattr(self, name, operation)
        return self

    def get(self, name: str) -> Operation:
        return getattr(self, name, None)

    def supports(self, name: str) -> bool:
        return self.get(name) is not None

    def to_dict(self) -> Dict[str, Operation]:
        return {name: self.get(name) for name in self.CAPABILITIES if self.supports(name)}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(self.to_dict())})"


class RelatedAdapter(_CapabilityTable):
    """Relation traversal capabilities (``adapter.related``)"""

    CAPABILITIES = ("add", "find_all", "find", "count", "create", "has", "remove")


class Adapter(_CapabilityTable):
    """
    Storage capabilities of a model type.

    Example:
        ```python
        def save(model, changed, done):
            rows[model.primary] = dict(changed)
            done(None, {"updated_at": now()})

        User.adapter.save = save
        User.adapter.related = {"find_all": find_related}
        ```
    """

    CAPABILITIES = ("find", "find_all", "count", "save", "remove", "remove_all")

    def __init__(self, related: Union[RelatedAdapter, Mapping[str, Operation], None] = None,
                 **capabilities: Operation):
        super().__init__(**capabilities)
        self.related = related

    @property
    def related(self) -> RelatedAdapter:
        return self._related

    @related.setter
    def related(self, value: Union[RelatedAdapter, Mapping[str, Operation], None]) -> None:
        if value is None:
            value = RelatedAdapter()
        elif isinstance(value, Mapping):
            value = RelatedAdapter(**value)
        object.__setattr__(self, "_related", value)

    def to_dict(self) -> Dict[str, Any]:
        table: Dict[str, Any] = super().to_dict()
        related = self.related.to_dict()
        if related:
            table["related"] = related
        return table


__all__ = ["Adapter", "RelatedAdapter", "Operation"]
