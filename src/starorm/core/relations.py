"""
Relation Registry & Traversal Engine

🔗 Related records across model types:
Relations are declared on an owner type (``User.has_many(Post)``) and
registered in the registries of both participants, keyed by
``(owner type, role name)``. Many-to-many relations go through a join
type, synthesized on demand with one ``belongs_to`` per participant.

Traversal happens through :class:`BoundRelation`, the object returned by
``instance.relation(name)`` and by the role-named property
(``user.posts``). Reads delegate to the storage adapter; writes either
delegate to a bulk adapter capability or walk the related records one by
one, saving foreign keys and join records as they go.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..errors import (
    DuplicateRelationError,
    NoAdapterSupportError,
    RelationKeyConflictError,
    UndefinedPrimaryKeyError,
)
from ..utils import as_list, each_series, noop, pluralize, split_callback
from .collection import hydrate

logger = logging.getLogger(__name__)


class RelationKind(str, Enum):
    """Shapes of relations between two model types"""
    HAS_MANY = "has many"
    BELONGS_TO = "belongs to"
    HAS_ONE = "has one"
    HAS_AND_BELONGS_TO_MANY = "has and belongs to many"


class RelationSpec(BaseModel):
    """
    Declaration of a relation.

    ``model`` is the declaring (owner) type and ``another_model`` the
    related one. ``foreign_key`` lives on ``another_model`` for has-many,
    on ``model`` for belongs-to and has-one, and on the join type for
    many-to-many, where ``through_key`` holds the related record's key.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, extra="allow",
                              populate_by_name=True)

    kind: RelationKind
    model: Any
    another_model: Any
    as_: str = Field(alias="as")
    foreign_key: str
    through: Any = None
    through_key: Optional[str] = None

    @property
    def name(self) -> str:
        return self.as_

    @property
    def is_many_to_many(self) -> bool:
        return self.through is not None

    @property
    def keys_on_owner(self) -> bool:
        """True when the owner stores the related record's key."""
        return self.kind in (RelationKind.BELONGS_TO, RelationKind.HAS_ONE)

    def __repr__(self) -> str:
        return (f"RelationSpec({self.model.type}.{self.as_}: {self.kind.value} "
                f"{self.another_model.type} via {self.foreign_key})")


class RelationRegistry:
    """Relations visible from one model type, keyed by (owner, role name)"""

    def __init__(self):
        self._relations: Dict[Tuple[Any, str], RelationSpec] = {}

    def register(self, spec: RelationSpec) -> None:
        key = (spec.model, spec.as_)
        existing = self._relations.get(key)
        if existing is spec:
            return
        if existing is not None:
            raise DuplicateRelationError(spec.as_, spec.model)
        self._relations[key] = spec

    def get(self, owner: Any, name: str) -> Optional[RelationSpec]:
        return self._relations.get((owner, name))

    def owned_by(self, owner: Any) -> List[RelationSpec]:
        return [spec for (model, _), spec in self._relations.items() if model is owner]

    def __contains__(self, key: Tuple[Any, str]) -> bool:
        return key in self._relations

    def __iter__(self) -> Iterator[RelationSpec]:
        return iter(self._relations.values())

    def __len__(self) -> int:
        return len(self._relations)


class RelationAccessor:
    """Bound relation on an instance, the :class:`RelationSpec` on the class."""

    def __init__(self, name: str):
        self.name = name

    def __get__(self, instance, owner):
        if instance is None:
            return owner.relations.get(owner, self.name)
        return instance.relation(self.name)


def _key_for(model_type) -> str:
    return f"{model_type.type.lower()}_id"


def _role_for(key: str, model_type) -> str:
    return key[:-3] if key.endswith("_id") and len(key) > 3 else model_type.type.lower()


def _key_for_role(role: str) -> str:
    return f"{role[:-1] if role.endswith('s') else role}_id"


def join_model(model, another_model, foreign_key: str, through_key: str):
    """
    Get or synthesize the join type for an unordered pair of types.

    The join type is named after both types in sorted order (``PostTag``)
    and cached on both participants, so ``Post``/``Tag`` relations declared
    from either side share the same class.
    """
    from .model import create_model

    through = model._join_types.get(another_model)
    if through is None:
        first, second = sorted((model, another_model), key=lambda m: m.type)
        through = create_model(
            first.type + second.type,
            {"table_name": f"{first.type}_{second.type}".lower()},
        )
        through.attr("id", primary=True)
        model._join_types[another_model] = through
        another_model._join_types[model] = through
        logger.debug("Synthesized join model %s", through.type)

    through.attr(foreign_key).attr(through_key)

    for key, participant in ((foreign_key, model), (through_key, another_model)):
        role = _role_for(key, participant)
        if through.relations.get(through, role) is None:
            through.belongs_to(participant, as_=role, foreign_key=key)

    return through


def declare(model, kind: RelationKind, another_model, as_: Optional[str] = None,
            foreign_key: Optional[str] = None, through: Any = None,
            through_key: Optional[str] = None, **extra: Any) -> RelationSpec:
    """
    Register a relation on ``model`` and ``another_model``.

    Args:
        model: Owner type
        kind: Relation shape
        another_model: Related type
        as_: Role name, defaults to the pluralized related type name
        foreign_key: Key attribute name, defaulted per relation shape and
            declared on the type that stores it
        through: Explicit join type for many-to-many
        through_key: Join attribute holding the related key; given without
            ``through`` it makes a join type be synthesized
        **extra: Kept on the relation spec for adapters

    Raises:
        DuplicateRelationError: If ``model`` already owns a relation ``as_``
        RelationKeyConflictError: If a many-to-many relation would store both
            sides under the same join attribute
        TypeError: If either side is the base ``Model``
    """
    from .model import Model

    if Model in (model, another_model):
        raise TypeError("Relations must be declared between model types, not on Model")

    as_ = as_ or pluralize(another_model.type)
    many_to_many = (kind is RelationKind.HAS_AND_BELONGS_TO_MANY
                    or through is not None or through_key is not None)

    if foreign_key is None:
        if kind is RelationKind.HAS_MANY or many_to_many:
            foreign_key = _key_for(model)
        else:
            foreign_key = _key_for(another_model)

    if model.relations.get(model, as_) is not None:
        raise DuplicateRelationError(as_, model)

    # Foreign keys are ordinary attributes of the type that stores them
    if many_to_many:
        if through_key is None:
            through_key = _key_for(another_model)
            # Self-referential joins key the related side by role
            if through_key == foreign_key:
                through_key = _key_for_role(as_)
        if through_key == foreign_key:
            raise RelationKeyConflictError(through_key, model)
        if through is None:
            through = join_model(model, another_model, foreign_key, through_key)
        else:
            through.attr(foreign_key).attr(through_key)
    elif kind is RelationKind.HAS_MANY:
        another_model.attr(foreign_key)
    else:
        model.attr(foreign_key)

    spec = RelationSpec(
        kind=kind,
        model=model,
        another_model=another_model,
        as_=as_,
        foreign_key=foreign_key,
        through=through,
        through_key=through_key,
        **extra,
    )

    for participant in (model, another_model, through):
        if participant is not None:
            participant.relations.register(spec)

    if not as_.startswith("_") and not hasattr(model, as_):
        setattr(model, as_, RelationAccessor(as_))
    else:
        logger.debug("%s.%s shadows a model member; use relation()", model.type, as_)

    model.emit("relation", spec)
    if another_model is not model:
        another_model.emit("relation", spec)

    logger.debug("Declared %r", spec)
    return spec


class BoundRelation:
    """
    Relation operations bound to one owner instance.

    All operations take an optional trailing ``callback``. Operations that
    accept related records take a single record, a single id, or a list of
    either.
    """

    def __init__(self, model, spec: RelationSpec):
        self.model = model
        self.spec = spec

    @property
    def name(self) -> str:
        return self.spec.as_

    @property
    def another_model(self):
        return self.spec.another_model

    def _capability(self, model_type, capability: str) -> Callable:
        operation = model_type.adapter.related.get(capability)
        if operation is None:
            raise NoAdapterSupportError(f"related.{capability}", self.model)
        return operation

    # Reads

    def find_all(self, query: Any = None, callback: Optional[Callable] = None):
        """Fetch related records through ``related.find_all``."""
        query, callback = split_callback(query, callback)
        query = {} if query is None else query
        callback = callback or noop
        operation = self._capability(self.another_model, "find_all")

        def done(err=None, rows=None):
            if err:
                return callback(err, None)
            callback(None, hydrate(self.another_model, rows, query))

        operation(self.model, self.spec, query, done)
        return self.model

    def find(self, query: Any = None, callback: Optional[Callable] = None):
        """Fetch one related record through ``related.find``."""
        query, callback = split_callback(query, callback)
        query = {} if query is None else query
        callback = callback or noop
        operation = self._capability(self.another_model, "find")

        def done(err=None, row=None):
            if err:
                return callback(err, None)
            callback(None, self.another_model.create(row) if row else None)

        operation(self.model, self.spec, query, done)
        return self.model

    def count(self, query: Any = None, callback: Optional[Callable] = None):
        query, callback = split_callback(query, callback)
        query = {} if query is None else query
        callback = callback or noop
        operation = self._capability(self.another_model, "count")

        def done(err=None, count=None):
            if err:
                return callback(err, None)
            callback(None, count)

        operation(self.model, self.spec, query, done)
        return self.model

    def has(self, related: Any, callback: Optional[Callable] = None):
        """Ask the owner's adapter whether ``related`` is related."""
        callback = callback or noop
        operation = self._capability(self.spec.model, "has")

        def done(err=None, result=None):
            if err:
                return callback(err, None)
            callback(None, result)

        operation(self.model, self.spec, related, done)
        return self.model

    all = find_all
    get = find
    find_one = find

    # Writes

    def create(self, items: Any = None, callback: Optional[Callable] = None):
        """
        Create related records and relate them to the owner.

        ``items`` is an attribute mapping, a model, or a list of either;
        omitted, a single record with default attributes is created. The
        callback receives ``(None, *created)`` in input order.
        """
        if callback is None and callable(items):
            items, callback = None, items
        callback = callback or noop
        rows = [{}] if items is None else as_list(items)
        another_model = self.another_model

        bulk = another_model.adapter.related.get("create")
        if bulk is not None:
            def created(err=None, result=None):
                if err:
                    return callback(err)
                callback(None, *[another_model.create(row) for row in (result or [])])

            bulk(self.model, self.spec, rows, created)
            return self.model

        collection: List[Any] = []

        def step(attrs, done):
            related = another_model.create(attrs)

            def finish(err=None):
                if err:
                    return done(err)
                collection.append(related)
                done()

            self._create_one(related, finish)

        def finished(err=None):
            if err:
                return callback(err)
            callback(None, *collection)

        each_series(rows, step, finished)
        return self.model

    def add(self, items: Any, callback: Optional[Callable] = None):
        """
        Relate existing records (or ids) to the owner.

        Ids are loaded with ``find_all`` on the related type first. A
        ``related.add`` capability on the owner's adapter replaces the
        per-record loop.
        """
        callback = callback or noop
        self._resolve(as_list(items), callback,
                      lambda related: self._apply("add", self._link, related, callback))
        return self.model

    def remove(self, items: Any, callback: Optional[Callable] = None):
        """Unrelate records (or ids); mirrors :meth:`add`."""
        callback = callback or noop
        self._resolve(as_list(items), callback,
                      lambda related: self._apply("remove", self._unlink, related, callback))
        return self.model

    # Internals

    def _resolve(self, items: List[Any], callback: Callable, then: Callable) -> None:
        from .model import Model

        ids = [item for item in items if not isinstance(item, Model)]
        if not ids:
            return then(items)

        another_model = self.another_model
        if not another_model.primary_key:
            raise UndefinedPrimaryKeyError(another_model)

        def loaded(err=None, collection=None):
            if err:
                return callback(err)
            instances = [item for item in items if isinstance(item, Model)]
            then(instances + list(collection or []))

        another_model.find_all({another_model.primary_key: {"$in": ids}}, loaded)

    def _apply(self, capability: str, step: Callable, related: List[Any],
               callback: Callable) -> None:
        bulk = self.spec.model.adapter.related.get(capability)
        if bulk is not None:
            def done(err=None, result=None):
                if err:
                    return callback(err)
                callback(None, *(related if result is None else result))

            logger.debug("%s.%s: bulk %s of %d", self.spec.model.type, self.name,
                         capability, len(related))
            bulk(self.model, self.spec, related, done)
            return

        def finished(err=None):
            if err:
                return callback(err)
            callback(None, *related)

        each_series(related, step, finished)

    def _create_one(self, related, done: Callable) -> None:
        spec = self.spec
        owner = self.model

        if spec.is_many_to_many:
            def saved(err=None):
                if err:
                    return done(err)
                owner.relation(spec.as_).add(related, lambda err=None, *_: done(err))

            related.save(saved)
        elif spec.kind is RelationKind.HAS_MANY:
            related._write(spec.foreign_key, owner.primary)
            related.save(done)
        else:
            self._save_then_key_owner(related, lambda: related.primary, done)

    def _link(self, related, done: Callable) -> None:
        spec = self.spec
        owner = self.model

        if spec.is_many_to_many:
            join = spec.through({
                spec.foreign_key: owner.primary,
                spec.through_key: related.primary,
            })
            join.save(done)
        elif spec.kind is RelationKind.HAS_MANY:
            related._write(spec.foreign_key, owner.primary)
            related.save(done)
        else:
            self._save_then_key_owner(related, lambda: related.primary, done)

    def _unlink(self, related, done: Callable) -> None:
        spec = self.spec
        owner = self.model

        if spec.is_many_to_many:
            def found(err=None, join=None):
                if err:
                    return done(err)
                if join is None:
                    return done()
                join.remove(done)

            spec.through.find({
                spec.foreign_key: owner.primary,
                spec.through_key: related.primary,
            }, found)
        elif spec.kind is RelationKind.HAS_MANY:
            related._write(spec.foreign_key, None)
            related.save(done)
        else:
            self._save_then_key_owner(related, lambda: None, done)

    def _save_then_key_owner(self, related, key: Callable[[], Any], done: Callable) -> None:
        owner = self.model
        foreign_key = self.spec.foreign_key

        def saved(err=None):
            if err:
                return done(err)
            # read the key after saving; the adapter may have assigned it
            owner._write(foreign_key, key())
            owner.save(done)

        related.save(saved)

    def __repr__(self) -> str:
        return f"<BoundRelation {self.spec.model.type}.{self.name}>"


__all__ = [
    "RelationKind",
    "RelationSpec",
    "RelationRegistry",
    "RelationAccessor",
    "BoundRelation",
    "declare",
    "join_model",
]
