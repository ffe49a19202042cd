"""Document Merger: the new stored document for an update.

``merge(previous, incoming)``:

  incoming UNSET   → previous, unchanged (field not part of the update)
  incoming None    → UNSET (document wiped)
  incoming {}      → {} (explicit reset, previous keys are dropped)
  incoming {k: v}  → previous ∪ incoming, incoming replaces whole values

Values are replaced per top-level key; nothing inside a value is merged.
"""

from __future__ import annotations

from dynattr.models.documents import AttributeDocument, MaybeDocument
from dynattr.models.enums import UNSET, _Unset


def merge(
    previous: MaybeDocument,
    incoming: AttributeDocument | None | _Unset,
) -> MaybeDocument:
    if incoming is UNSET:
        return previous
    if incoming is None:
        return UNSET
    if not incoming:
        return {}
    base: AttributeDocument = {} if previous is UNSET else previous
    return {**base, **incoming}


def changed_keys(previous: MaybeDocument, merged: MaybeDocument) -> set[str]:
    """Top-level keys whose value differs between two documents."""
    old = {} if previous is UNSET else previous
    new = {} if merged is UNSET else merged
    return {k for k in old.keys() | new.keys() if old.get(k, UNSET) != new.get(k, UNSET)}
