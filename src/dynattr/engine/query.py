"""Query Translator: criteria on ``attributes.<name>`` as view predicates & orderings.

Field references:

    attributes.foo          → attribute "foo"
    attributes."foo.bar"    → attribute "foo.bar" (quoted: the dot is literal)
    attributes.foo.bar      → AttributePathError (nested paths are not supported)

Predicates and sort keys are always evaluated against the *resolved* view of a
candidate, never against its raw stored document, so children match on values
inherited from their parent.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from dynattr.engine import coercion
from dynattr.errors import AttributePathError, UnknownAttributeError
from dynattr.logging import get_logger
from dynattr.models.documents import EqualsFilter, FieldSorting, MaybeDocument
from dynattr.models.enums import UNSET, AttributeType
from dynattr.schema import AttributeRegistry

log = get_logger("query")

Predicate = Callable[[MaybeDocument], bool]


def parse_attribute_field(field: str, prefix: str = "attributes") -> str | None:
    """Attribute name addressed by ``field``, or ``None`` if it is not an attribute field."""
    head = prefix + "."
    if field == prefix:
        raise AttributePathError(f"'{field}' addresses the whole document; name an attribute")
    if not field.startswith(head):
        return None

    rest = field[len(head):]
    if not rest:
        raise AttributePathError(f"Missing attribute name in '{field}'")
    if rest.startswith('"'):
        if len(rest) < 3 or not rest.endswith('"') or '"' in rest[1:-1]:
            raise AttributePathError(f"Unterminated or malformed quoted attribute name in '{field}'")
        return rest[1:-1]
    if '"' in rest:
        raise AttributePathError(f"Unexpected quote in '{field}'")
    if "." in rest:
        raise AttributePathError(
            f"Nested attribute paths are not supported: '{field}'. "
            f'Quote names that contain a dot, e.g. {prefix}."{rest}"'
        )
    return rest


def quote_attribute_field(name: str, prefix: str = "attributes") -> str:
    """Build the criteria field for ``name``, quoting it when it contains a dot."""
    if "." in name:
        return f'{prefix}."{name}"'
    return f"{prefix}.{name}"


@dataclass(frozen=True)
class CompiledSorting:
    name: str
    type: AttributeType
    descending: bool


class AttributeQueryTranslator:
    """Compile attribute filters / sortings and evaluate them on resolved views.

    Usage:
        translator = AttributeQueryTranslator(registry)
        keep = translator.compile_filter(EqualsFilter(field="attributes.foo", value="bar"))
        keep({"foo": "BAR"})          # True (text compares case-insensitively)
        ordered = translator.order(ids, views, [FieldSorting(field="attributes.int")])
    """

    def __init__(self, registry: AttributeRegistry, *, prefix: str = "attributes"):
        self._registry = registry
        self._prefix = prefix

    # ── Field handling ─────────────────────────────────
    def attribute_name(self, field: str) -> str | None:
        return parse_attribute_field(field, self._prefix)

    def is_attribute_field(self, field: str) -> bool:
        return field.startswith(self._prefix + ".") or field == self._prefix

    def _require_name(self, field: str) -> str:
        name = self.attribute_name(field)
        if name is None:
            raise AttributePathError(f"'{field}' is not an attribute field (expected '{self._prefix}.<name>')")
        return name

    # ── Filters ────────────────────────────────────────
    def compile_filter(self, flt: EqualsFilter) -> Predicate:
        """Predicate over a resolved view document.

        The literal is coerced once, here, so a ``TypeMismatchError`` aborts
        the query before any candidate is looked at.  Names without a
        registered type compare by raw structural equality.
        """
        name = self._require_name(flt.field)
        type_ = self._registry.type_of(name)

        if flt.value is None:
            def is_null(view: MaybeDocument) -> bool:
                return coercion.equals(type_, coercion.lookup(view, name), None)
            return is_null

        expected = coercion.coerce_literal(name, type_, flt.value)

        def is_equal(view: MaybeDocument) -> bool:
            return coercion.matches_canonical(type_, coercion.lookup(view, name), expected)
        return is_equal

    def compile_filters(self, filters: Iterable[EqualsFilter]) -> Predicate:
        predicates = [self.compile_filter(f) for f in filters]

        def all_match(view: MaybeDocument) -> bool:
            return all(p(view) for p in predicates)
        return all_match

    def matches(self, view: MaybeDocument, filters: Iterable[EqualsFilter]) -> bool:
        return self.compile_filters(filters)(view)

    def evaluate(
        self,
        views: Mapping[Hashable, MaybeDocument],
        filters: Iterable[EqualsFilter],
    ) -> dict[Hashable, bool]:
        """Per-candidate filter outcome, keyed like ``views``."""
        predicate = self.compile_filters(filters)
        return {key: predicate(view) for key, view in views.items()}

    # ── Sorting ────────────────────────────────────────
    def compile_sorting(self, sorting: FieldSorting) -> CompiledSorting:
        name = self._require_name(sorting.field)
        type_ = self._registry.type_of(name)
        if type_ is None:
            raise UnknownAttributeError(name)
        return CompiledSorting(name=name, type=type_, descending=sorting.descending)

    def sort_key(self, view: MaybeDocument, sorting: FieldSorting | CompiledSorting) -> Any | None:
        """Comparable key of the view's value; ``None`` when missing, null or uncoercible."""
        if isinstance(sorting, FieldSorting):
            sorting = self.compile_sorting(sorting)
        return coercion.sort_key(sorting.type, coercion.lookup(view, sorting.name))

    def order(
        self,
        keys: Sequence[Hashable],
        views: Mapping[Hashable, MaybeDocument],
        sortings: Sequence[FieldSorting],
    ) -> list[Hashable]:
        """Order ``keys`` by ``sortings`` (first sorting has highest priority).

        Candidates without a value sort last in either direction; ties keep
        the incoming order.
        """
        compiled = [self.compile_sorting(s) for s in sortings]
        result = list(keys)
        # Successive stable sorts, lowest priority first.
        for sorting in reversed(compiled):
            present: list[tuple[Any, Hashable]] = []
            missing: list[Hashable] = []
            for key in result:
                value = self.sort_key(views.get(key, UNSET), sorting)
                if value is None:
                    missing.append(key)
                else:
                    present.append((value, key))
            present.sort(key=lambda pair: pair[0], reverse=sorting.descending)
            result = [key for _, key in present] + missing
        return result

    # ── Whole criteria ─────────────────────────────────
    def apply(
        self,
        keys: Sequence[Hashable],
        views: Mapping[Hashable, MaybeDocument],
        filters: Iterable[EqualsFilter] = (),
        sortings: Sequence[FieldSorting] = (),
    ) -> list[Hashable]:
        """Filter then order ``keys`` using their resolved ``views``."""
        predicate = self.compile_filters(filters)
        kept = [k for k in keys if predicate(views.get(k, UNSET))]
        ordered = self.order(kept, views, sortings) if sortings else kept
        log.debug("attribute_query_applied", candidates=len(keys), matched=len(ordered))
        return ordered
