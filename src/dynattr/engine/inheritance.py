"""Inheritance Resolver: the attribute view a reader of a child observes.

Views are always computed from (own, parent-own) at read time; nothing
inherited is ever written into a child's stored document, so a parent update
is visible to every child immediately.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping

from dynattr.models.documents import MaybeDocument
from dynattr.models.enums import UNSET


def resolve_view(own: MaybeDocument, parent: MaybeDocument = UNSET) -> MaybeDocument:
    """Own document over the parent's: unset inherits everything, own keys win."""
    if own is UNSET:
        return parent
    if parent is UNSET:
        return own
    return {**parent, **own}


def resolve_views(
    own_documents: Mapping[Hashable, MaybeDocument],
    parent_ids: Mapping[Hashable, Hashable | None],
    parent_documents: Mapping[Hashable, MaybeDocument],
) -> dict[Hashable, MaybeDocument]:
    """Resolve every entity in ``own_documents`` against its direct parent.

    ``parent_documents`` holds the parents' *own* documents; a parent missing
    from it is treated as having no document.
    """
    views: dict[Hashable, MaybeDocument] = {}
    for entity_id, own in own_documents.items():
        parent_id = parent_ids.get(entity_id)
        if parent_id is None:
            views[entity_id] = own
        else:
            views[entity_id] = resolve_view(own, parent_documents.get(parent_id, UNSET))
    return views
