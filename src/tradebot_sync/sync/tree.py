"""
Immutable nested updates for configuration trees.

A configuration tree is a nested dict (leaves are numbers, booleans or
strings). Updates never mutate their input: every ancestor on the path is
shallow-copied and untouched siblings are shared by reference.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterable, Sequence, Union

ConfigTree = dict[str, Any]
Path = Union[str, Sequence[str]]


def split_path(path: Path) -> list[str]:
    """Normalize "a.b.c" or ["a", "b", "c"] into a list of keys."""
    if isinstance(path, str):
        return [part for part in path.split(".") if part]
    return list(path)


def update_path(tree: Mapping[str, Any], path: Path, value: Any) -> Any:
    """
    Return a copy of `tree` with the leaf at `path` replaced by `value`.

    An empty path returns `tree` unchanged. Intermediate nodes that are
    missing (or are not mappings) are replaced by fresh dicts. The leaf is
    replaced regardless of its previous type.

    Example:
        >>> update_path({"a": {"b": 1, "c": 2}}, ["a", "b"], 9)
        {'a': {'b': 9, 'c': 2}}
    """
    keys = split_path(path)
    if not keys:
        return tree

    head, rest = keys[0], keys[1:]
    new_tree = dict(tree)
    if not rest:
        new_tree[head] = value
        return new_tree

    child = tree.get(head)
    if not isinstance(child, Mapping):
        child = {}
    new_tree[head] = update_path(child, rest, value)
    return new_tree


def get_path(tree: Mapping[str, Any], path: Path, default: Any = None) -> Any:
    """Read the value at `path`, or `default` if any segment is missing."""
    node: Any = tree
    for key in split_path(path):
        if not isinstance(node, Mapping) or key not in node:
            return default
        node = node[key]
    return node


def merge_fields(
    tree: Mapping[str, Any],
    updates: Union[Mapping[str, Any], Iterable[tuple[Path, Any]]],
) -> Any:
    """Apply several path updates in order, each through update_path()."""
    items = updates.items() if isinstance(updates, Mapping) else updates
    result = tree
    for path, value in items:
        result = update_path(result, path, value)
    return result
