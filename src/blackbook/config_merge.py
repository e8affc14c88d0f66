"""Deep merge for ``config.yaml`` + ``config.local.yaml``.

Semantics:

* Scalars -- the override wins.
* Mappings -- merged recursively.
* Lists of mappings carrying a string ``id`` or ``name`` -- merged by that
  key: matching entries are deep-merged in place, unmatched override entries
  are appended, base order is preserved.
* Any other list -- the override replaces the base list wholesale.
* ``None`` in the override -- the key is deleted from the result.  This is
  the only deletion mechanism.

Neither input is mutated.
"""

from __future__ import annotations

import copy
from typing import Any

MERGE_KEY_CANDIDATES = ("id", "name")


def _has_string_key(item: Any, key: str) -> bool:
    return isinstance(item, dict) and isinstance(item.get(key), str)


def find_merge_key(base: list[Any], override: list[Any]) -> str | None:
    """Pick the key used to match list entries, or ``None`` to replace.

    A key present in both lists is preferred; otherwise any candidate key
    present in either list is used.
    """
    for candidate in MERGE_KEY_CANDIDATES:
        in_base = any(_has_string_key(item, candidate) for item in base)
        in_override = any(
            _has_string_key(item, candidate) for item in override
        )
        if in_base and in_override:
            return candidate
    for candidate in MERGE_KEY_CANDIDATES:
        if any(
            _has_string_key(item, candidate) for item in [*base, *override]
        ):
            return candidate
    return None


def _merge_lists(base: list[Any], override: list[Any]) -> list[Any]:
    merge_key = find_merge_key(base, override)
    if merge_key is None:
        return copy.deepcopy(override)

    result = copy.deepcopy(base)
    for item in override:
        if not _has_string_key(item, merge_key):
            result.append(copy.deepcopy(item))
            continue
        key_value = item[merge_key]
        for index, existing in enumerate(result):
            if (
                isinstance(existing, dict)
                and existing.get(merge_key) == key_value
            ):
                result[index] = deep_merge(existing, item)
                break
        else:
            result.append(_strip_nulls(item))
    return result


def _strip_nulls(value: Any) -> Any:
    """Drop ``None``-valued keys from a mapping that has no base to delete from."""
    if isinstance(value, dict):
        return {
            k: _strip_nulls(v) for k, v in value.items() if v is not None
        }
    return copy.deepcopy(value)


def deep_merge(
    base: dict[str, Any], override: dict[str, Any]
) -> dict[str, Any]:
    """Return *base* deep-merged with *override* (see module docstring)."""
    result: dict[str, Any] = copy.deepcopy(base)

    for key, override_value in override.items():
        if override_value is None:
            result.pop(key, None)
            continue

        base_value = result.get(key)

        if isinstance(base_value, list) and isinstance(
            override_value, list
        ):
            result[key] = _merge_lists(base_value, override_value)
        elif isinstance(base_value, dict) and isinstance(
            override_value, dict
        ):
            result[key] = deep_merge(base_value, override_value)
        else:
            result[key] = _strip_nulls(override_value)

    return result
