"""Traversal predicates over an object's facets and attributes.

A predicate is a plain function ``ObjectView -> bool``. The helpers here
build predicates from values only, so they hold no reference to a
session or a store and can be tested in isolation.
"""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Iterable
from dataclasses import dataclass

from dirgraph.models.refs import AttributeKey
from dirgraph.models.refs import AttributeKeyAndValue
from dirgraph.models.refs import AttributeValue
from dirgraph.models.refs import ObjectRef


@dataclass(frozen=True)
class ObjectView:
    """What a predicate gets to see of one visited object."""

    ref: ObjectRef
    facets: tuple[str, ...] = ()
    attributes: tuple[AttributeKeyAndValue, ...] = ()

    @property
    def facet_name(self) -> str | None:
        """The first applied facet; objects are expected to carry one."""
        return self.facets[0] if self.facets else None

    @property
    def facet_set(self) -> frozenset[str]:
        return frozenset(self.facets)

    def has_facet(self, name: str) -> bool:
        return name in self.facets

    def value(self, facet: str, name: str) -> AttributeValue | None:
        key = AttributeKey(facet=facet, name=name)
        for item in self.attributes:
            if item.key == key:
                return item.value
        return None


Predicate = Callable[[ObjectView], bool]


def has_facet(name: str) -> Predicate:
    def predicate(view: ObjectView) -> bool:
        return view.has_facet(name)

    return predicate


def attribute_in(facet: str, name: str, values: Iterable[AttributeValue]) -> Predicate:
    """Match objects whose ``facet.name`` value is one of *values*."""
    accepted = frozenset(values)

    def predicate(view: ObjectView) -> bool:
        return view.value(facet, name) in accepted

    return predicate


def all_of(*predicates: Predicate) -> Predicate:
    def predicate(view: ObjectView) -> bool:
        return all(p(view) for p in predicates)

    return predicate


def any_of(*predicates: Predicate) -> Predicate:
    def predicate(view: ObjectView) -> bool:
        return any(p(view) for p in predicates)

    return predicate
