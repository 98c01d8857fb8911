# Overview: Service-layer operations for variant keys; canonical encoding of option selections.

"""
Variant key codec.

A selection maps option-group ids to one or more chosen option ids:

    {3: [7], "1": 2}  ->  {"1": [2], "3": [7]}  ->  "1:2,3:7"

Every (group, option) pair is rendered as "group:option", the flattened list
is sorted lexicographically and joined with ",". The sort makes the key
independent of both dict ordering and multi-select list ordering, so any two
spellings of the same selection land on the same ItemVariant row.

The key is for lookup only. Human-readable names come from display_name().
"""

from __future__ import annotations

from ..errors import InvalidSelectionError


def _as_int(value, *, what: str) -> int:
    if isinstance(value, bool):
        raise InvalidSelectionError(f"Invalid {what} id: {value!r}", {what: value})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidSelectionError(f"Invalid {what} id: {value!r}", {what: value}) from None


def normalize_selection(selected) -> dict[str, list[int]]:
    """
    Canonical selection form: {str(group_id): [int option ids]}.

    Scalars are wrapped into lists, empty selections are dropped and
    duplicate option ids within a group are collapsed.
    """
    normalized: dict[str, list[int]] = {}
    for group_id, option_ids in (selected or {}).items():
        if option_ids is None or option_ids == "" or option_ids == []:
            continue
        if not isinstance(option_ids, (list, tuple, set)):
            option_ids = [option_ids]
        ids = sorted({_as_int(o, what="option") for o in option_ids})
        if ids:
            normalized[str(_as_int(group_id, what="group"))] = ids
    return normalized


def encode(selected) -> str:
    pairs = [
        f"{group_id}:{option_id}"
        for group_id, option_ids in normalize_selection(selected).items()
        for option_id in option_ids
    ]
    return ",".join(sorted(pairs))


def decode(variant_key: str) -> list[tuple[int, int]]:
    """Split a key back into (group_id, option_id) pairs, in key order."""
    if not variant_key:
        return []
    pairs = []
    for token in variant_key.split(","):
        group_part, sep, option_part = token.partition(":")
        if not sep:
            raise InvalidSelectionError(f"Malformed variant key segment: {token!r}", {"variant_key": variant_key})
        pairs.append((_as_int(group_part, what="group"), _as_int(option_part, what="option")))
    return pairs


def selection_from_key(variant_key: str) -> dict[str, list[int]]:
    selection: dict[str, list[int]] = {}
    for group_id, option_id in decode(variant_key):
        selection.setdefault(str(group_id), []).append(option_id)
    return normalize_selection(selection)


def display_name(item, key_or_selection) -> str:
    """
    Human-readable variant name, e.g. "Large / Red".

    Option names are joined in group position order (then option position),
    regardless of how the key or selection was spelled.
    """
    if isinstance(key_or_selection, str):
        selection = selection_from_key(key_or_selection)
    else:
        selection = normalize_selection(key_or_selection)

    names = []
    for group in item.option_groups:
        chosen = set(selection.get(str(group.id), []))
        if not chosen:
            continue
        for option in group.options:
            if option.id in chosen:
                names.append(option.name)
    return " / ".join(names)
