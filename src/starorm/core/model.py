"""
StarORM Model - Attribute State Machine & Lifecycle

🧬 Model types and their instances:
``create_model("user")`` returns a fresh ``Model`` subclass with its own
attribute registry, relation registry, validator list, adapter table and
type-level event emitter. Instances track their values, dirty attributes
and validation errors, and delegate persistence to the type's adapter
through continuation callbacks.

Example:
    ```python
    User = create_model("user")
    User.attr("id", primary=True).attr("name", required=True)

    user = User({"name": "alex"})
    user.save(lambda err=None: print(err, user.primary))
    ```
"""

import logging
from datetime import date, time, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..adapters.base import Adapter
from ..config import Environment, get_settings
from ..errors import UndefinedPrimaryKeyError, UnknownRelationError, ValidationError
from ..events import Emitter
from ..utils import capitalize, noop, split_callback
from .attributes import define_attribute
from .collection import hydrate
from .relations import BoundRelation, RelationKind, RelationRegistry, declare
from .validation import BUILTIN_VALIDATORS, FieldError, validate

logger = logging.getLogger(__name__)

_UNSET = object()

# Value types compared by equality when deciding whether a write is a change
_SCALARS = (str, bytes, int, float, complex, Decimal, date, time, timedelta, tuple, frozenset)


def _same(previous: Any, value: Any) -> bool:
    if previous is value:
        return True
    return type(previous) is type(value) and isinstance(value, _SCALARS) and previous == value


class _EmitterMethod:
    """
    Emitter method reachable from both the class and its instances.

    ``User.on(...)`` talks to the type-level emitter, ``user.on(...)`` to the
    instance emitter. ``on``/``once``/``off`` return the receiver so calls
    chain like the other declaration methods.
    """

    CHAINED = ("on", "once", "off")

    def __init__(self, name: str):
        self.name = name

    def __get__(self, instance, owner):
        if instance is None:
            receiver, emitter = owner, owner._type_emitter
        else:
            receiver, emitter = instance, instance._emitter

        method = getattr(emitter, self.name)
        if self.name not in self.CHAINED:
            return method

        def chained(*args, **kwargs):
            method(*args, **kwargs)
            return receiver

        chained.__name__ = self.name
        chained.__doc__ = method.__doc__
        return chained


class Model:
    """
    Base class of every model type.

    Class-level state is per type and created fresh for each subclass;
    instance shape is fixed, so only declared attributes can be assigned.
    """

    __slots__ = ("_values", "_dirty", "_emitter", "errors", "extras")

    type: str = "Model"
    primary_key: Optional[str] = None
    attributes: Dict[str, Any] = {}
    relations: RelationRegistry = RelationRegistry()
    validators: List[Callable] = list(BUILTIN_VALIDATORS)
    adapter: Adapter = Adapter()
    options: Dict[str, Any] = {}
    _type_emitter: Emitter = Emitter()
    _join_types: Dict[Any, Any] = {}

    on = _EmitterMethod("on")
    once = _EmitterMethod("once")
    off = _EmitterMethod("off")
    emit = _EmitterMethod("emit")
    listeners = _EmitterMethod("listeners")

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        namespace = cls.__dict__
        if "type" not in namespace:
            cls.type = cls.__name__
        # Attributes and validators are inherited by copy, everything else starts empty
        cls.attributes = dict(namespace.get("attributes", cls.attributes))
        cls.validators = list(namespace.get("validators", cls.validators))
        cls.options = dict(namespace.get("options", {}))
        cls.relations = RelationRegistry()
        cls.adapter = Adapter()
        cls._type_emitter = Emitter()
        cls._join_types = {}

    def __init__(self, attrs: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        values = dict(attrs or {})
        values.update(kwargs)

        self._values: Dict[str, Any] = {}
        self._dirty: List[str] = []
        self._emitter = Emitter()
        self.errors: List[FieldError] = []
        self.extras: Dict[str, Any] = {}

        model_type = type(self)
        model_type.emit("initializing", self, values)

        for name, spec in model_type.attributes.items():
            if name in values:
                self._values[name] = values[name]
                self._dirty.append(name)
            elif spec.has_default:
                self._values[name] = spec.default_value()
                self._dirty.append(name)
            else:
                self._values[name] = None

        model_type.emit("initialized", self)

    # Attribute access

    def get(self, name: str) -> Any:
        """
        Get the value of a declared attribute.

        Raises:
            KeyError: If ``name`` is not declared on this type
        """
        spec = self.attributes.get(name)
        if spec is None:
            raise KeyError(name)
        if spec.get is not None:
            return spec.get(self)
        return self._values.get(name)

    def set(self, attrs: Any = None, value: Any = _UNSET, **kwargs: Any) -> "Model":
        """
        Assign several attributes, ignoring names that are not declared.

        Accepts a mapping, a ``(name, value)`` pair or keyword arguments.
        """
        if isinstance(attrs, str):
            if value is _UNSET:
                raise TypeError("set() with an attribute name requires a value")
            attrs = {attrs: value}
        values = dict(attrs or {})
        values.update(kwargs)

        type(self).emit("setting", self, values)
        self.emit("setting", values)

        for name, item in values.items():
            if name in self.attributes:
                self._write(name, item)
        return self

    def _write(self, name: str, value: Any) -> bool:
        if name not in self.attributes:
            raise AttributeError(f"{self.type} has no attribute '{name}'")

        previous = self._values.get(name)
        if _same(previous, value):
            return False

        self._values[name] = value
        if name not in self._dirty:
            self._dirty.append(name)

        model_type = type(self)
        model_type.emit("change", self, name, value, previous)
        model_type.emit(f"change:{name}", self, value, previous)
        self.emit("change", name, value, previous)
        self.emit(f"change:{name}", value, previous)
        return True

    def has(self, name: str) -> bool:
        """Check whether ``name`` is a declared attribute."""
        return name in self.attributes

    def changed(self) -> Dict[str, Any]:
        """Snapshot of the attributes modified since the last save."""
        return {name: self.get(name) for name in self._dirty if name in self.attributes}

    @property
    def dirty(self) -> List[str]:
        return list(self._dirty)

    def is_dirty(self) -> bool:
        return bool(self._dirty)

    @property
    def primary(self) -> Any:
        if not self.primary_key:
            raise UndefinedPrimaryKeyError(self)
        return self.get(self.primary_key)

    @primary.setter
    def primary(self, value: Any) -> None:
        if not self.primary_key:
            raise UndefinedPrimaryKeyError(self)
        self._write(self.primary_key, value)

    def is_new(self) -> bool:
        return not self.primary

    # Validation

    def error(self, message: str, attribute: Optional[str] = None) -> FieldError:
        """Record a failure on this instance and emit ``error``."""
        failure = FieldError(message, attribute)
        self.errors.append(failure)
        type(self).emit("error", self, failure)
        self.emit("error", failure)
        return failure

    def is_valid(self) -> bool:
        """Run the type's validators, replacing ``errors``."""
        self.errors.clear()
        for failure in validate(self):
            self.error(failure.message, failure.attribute)
        return not self.errors

    # Lifecycle

    def save(self, callback: Optional[Callable] = None) -> "Model":
        """
        Validate and persist the changed attributes.

        Args:
            callback: Called as ``callback(err)``; ``err`` is ``None`` on
                success, a :class:`ValidationError` when validation fails or
                whatever the adapter reported

        Returns:
            The instance
        """
        callback = callback or noop
        model_type = type(self)
        changed = self.changed()

        model_type.emit("before save", self, changed)
        self.emit("before save", changed)

        def done(err=None, attrs=None):
            if err:
                return callback(err)

            for name, value in (attrs or {}).items():
                if name in model_type.attributes:
                    self._values[name] = value

            self._dirty.clear()
            model_type.emit("after save", self)
            self.emit("after save")
            callback(None)

        if self.primary_key and self.primary and not self.is_dirty():
            logger.debug("%r is clean, skipping save", self)
            done()
            return self

        if not self.is_valid():
            logger.debug("%r failed validation: %s", self, [str(e) for e in self.errors])
            callback(ValidationError(self, self.errors))
            return self

        operation = model_type.adapter.save
        if operation is None:
            done()
        else:
            logger.debug("Saving %r: %s", self, list(changed))
            operation(self, changed, done)
        return self

    def remove(self, callback: Optional[Callable] = None) -> "Model":
        """Remove the instance from storage; it becomes new again."""
        callback = callback or noop
        model_type = type(self)

        model_type.emit("before remove", self)
        self.emit("before remove")

        def done(err=None):
            if err:
                return callback(err)

            if model_type.primary_key:
                self._values[model_type.primary_key] = None

            model_type.emit("after remove", self)
            self.emit("after remove")
            callback(None)

        operation = model_type.adapter.remove
        if operation is None:
            done()
        else:
            operation(self, done)
        return self

    # Relations

    def relation(self, name: str) -> BoundRelation:
        """
        Get the operations of relation ``name`` bound to this instance.

        Raises:
            UnknownRelationError: If this type owns no relation ``name``
        """
        model_type = type(self)
        spec = model_type.relations.get(model_type, name)
        if spec is None:
            raise UnknownRelationError(name, self)
        return BoundRelation(self, spec)

    def to_dict(self) -> Dict[str, Any]:
        return {
            name: self.get(name)
            for name, spec in self.attributes.items()
            if spec.is_enumerable
        }

    def __repr__(self) -> str:
        if self.primary_key:
            return f"<{self.type} {self.primary_key}={self.get(self.primary_key)!r}>"
        return f"<{self.type}>"

    # Type-level declarations

    @classmethod
    def attr(cls, name: str, params: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        """
        Declare attribute ``name``; see :class:`AttributeSpec` for options.

        Returns:
            The model type, for chaining
        """
        if cls is Model:
            raise TypeError("attr() must be called on a model type, not on Model")
        if define_attribute(cls, name, params, **kwargs):
            cls.emit("attribute", name, cls.attributes[name])
        return cls

    @classmethod
    def use(cls, plugin: Any, *args: Any):
        """
        Apply a plugin: ``plugin(model_type, *args)``.

        With an environment name first (``User.use("browser", plugin)``)
        the plugin is only applied in that environment.
        """
        if isinstance(plugin, (str, Environment)):
            if not args:
                raise TypeError("use() with an environment requires a plugin")
            environment = Environment.parse(plugin)
            plugin, args = args[0], args[1:]
            if environment != get_settings().environment:
                logger.debug("Skipping %s plugin on %s", environment.value, cls.type)
                return cls
        plugin(cls, *args)
        return cls

    @classmethod
    def browser(cls, plugin: Callable):
        return cls.use(Environment.BROWSER, plugin)

    @classmethod
    def server(cls, plugin: Callable):
        return cls.use(Environment.SERVER, plugin)

    @classmethod
    def create(cls, attrs: Any = None):
        """Hydrate ``attrs`` into an instance; instances pass through."""
        if isinstance(attrs, cls):
            return attrs
        return cls(attrs)

    @classmethod
    def has_many(cls, another_model, as_: Optional[str] = None,
                 foreign_key: Optional[str] = None, through: Any = None,
                 through_key: Optional[str] = None, **extra: Any):
        declare(cls, RelationKind.HAS_MANY, another_model, as_=as_, foreign_key=foreign_key,
                through=through, through_key=through_key, **extra)
        return cls

    @classmethod
    def belongs_to(cls, another_model, as_: Optional[str] = None,
                   foreign_key: Optional[str] = None, **extra: Any):
        declare(cls, RelationKind.BELONGS_TO, another_model, as_=as_,
                foreign_key=foreign_key, **extra)
        return cls

    @classmethod
    def has_one(cls, another_model, as_: Optional[str] = None,
                foreign_key: Optional[str] = None, through: Any = None,
                through_key: Optional[str] = None, **extra: Any):
        declare(cls, RelationKind.HAS_ONE, another_model, as_=as_, foreign_key=foreign_key,
                through=through, through_key=through_key, **extra)
        return cls

    @classmethod
    def has_and_belongs_to_many(cls, another_model, as_: Optional[str] = None,
                                from_key: Optional[str] = None, to_key: Optional[str] = None,
                                through: Any = None, **extra: Any):
        declare(cls, RelationKind.HAS_AND_BELONGS_TO_MANY, another_model, as_=as_,
                foreign_key=from_key, through=through, through_key=to_key, **extra)
        return cls

    # Type-level queries

    @classmethod
    def _query(cls, query: Any) -> Dict[str, Any]:
        if query is None:
            return {}
        if isinstance(query, int) and not isinstance(query, bool):
            if not cls.primary_key:
                logger.warning("%s has no primary key, querying by 'id'", cls.type)
            return {cls.primary_key or "id": query}
        return query

    @classmethod
    def find(cls, query: Any = None, callback: Optional[Callable] = None):
        """
        Find one record by id or query.

        The callback receives ``(err, model)``; ``model`` is ``None`` when
        nothing matched.
        """
        query, callback = split_callback(query, callback)
        query = cls._query(query)
        callback = callback or noop

        cls.emit("before find", query)

        def done(err=None, attrs=None):
            if err:
                return callback(err, None)
            model = cls.create(attrs) if attrs else None
            cls.emit("after find", model)
            callback(None, model)

        operation = cls.adapter.find
        operation(cls, query, done) if operation else done()
        return cls

    @classmethod
    def find_all(cls, query: Any = None, callback: Optional[Callable] = None):
        """
        Find every record matching ``query``.

        The callback receives ``(err, collection)`` where ``collection`` is a
        :class:`Collection` carrying ``total``/``offset``/``limit``.
        """
        query, callback = split_callback(query, callback)
        query = cls._query(query)
        callback = callback or noop

        cls.emit("before findAll", query)

        def done(err=None, rows=None):
            if err:
                return callback(err, None)
            collection = hydrate(cls, rows, query)
            cls.emit("after findAll", collection)
            callback(None, collection)

        operation = cls.adapter.find_all
        operation(cls, query, done) if operation else done()
        return cls

    @classmethod
    def count(cls, query: Any = None, callback: Optional[Callable] = None):
        query, callback = split_callback(query, callback)
        query = cls._query(query)
        callback = callback or noop

        cls.emit("before count", query)

        def done(err=None, count=None):
            count = count or 0
            if err:
                return callback(err, count)
            cls.emit("after count", count)
            callback(None, count)

        operation = cls.adapter.count
        operation(cls, query, done) if operation else done()
        return cls

    @classmethod
    def remove_all(cls, query: Any = None, callback: Optional[Callable] = None):
        query, callback = split_callback(query, callback)
        query = cls._query(query)
        callback = callback or noop

        cls.emit("before removeAll", query)

        def done(err=None):
            if err:
                return callback(err)
            cls.emit("after removeAll")
            callback(None)

        operation = cls.adapter.remove_all
        operation(cls, query, done) if operation else done()
        return cls

    all = find_all
    find_one = find


def create_model(type_name: str, options: Optional[Mapping[str, Any]] = None):
    """
    Create a new model type.

    Args:
        type_name: Type name, capitalized (``"user"`` becomes ``"User"``)
        options: Free-form options kept on ``Model.options``

    Returns:
        A fresh ``Model`` subclass sharing no state with other types
    """
    name = capitalize(type_name)
    model_type = type(name, (Model,), {
        "__slots__": (),
        "__module__": __name__,
        "type": name,
        "options": dict(options or {}),
    })
    logger.debug("Created model type %s", name)
    return model_type


__all__ = ["Model", "create_model"]
