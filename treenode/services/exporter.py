"""
Serializes node views and tree snapshots for transport.

Trees may be nested far deeper than the interpreter's recursion limit, so both
the dict conversion and the JSON rendering walk the tree with explicit stacks.
"""
import json
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from treenode.services.models import TreeNodeView, TreeSnapshot


def _view_fields(view: TreeNodeView) -> Dict[str, Any]:
    return {
        "id": view.id,
        "name": view.name,
        "parentId": view.parent_id,
        "createdAt": view.created_at.isoformat()
    }


def _check_version(snapshot: TreeSnapshot):
    if not 1 <= len(snapshot.export_version) <= 10:
        raise ValueError(f"Export version must be 1 to 10 characters long: {snapshot.export_version!r}")


def node_view_to_dict(view: TreeNodeView) -> Dict[str, Any]:
    """Convert a TreeNodeView (and its expanded children) to a JSON-ready dict."""
    root = _view_fields(view)
    root["children"] = []
    stack = [(view, root)]
    while stack:
        current, target = stack.pop()
        for child in current.children:
            entry = _view_fields(child)
            entry["children"] = []
            target["children"].append(entry)
            stack.append((child, entry))
    return root


def snapshot_to_dict(snapshot: TreeSnapshot) -> Dict[str, Any]:
    _check_version(snapshot)
    return {
        "roots": [node_view_to_dict(root) for root in snapshot.roots],
        "exportDate": snapshot.export_date.isoformat(),
        "totalNodes": snapshot.total_nodes,
        "exportVersion": snapshot.export_version
    }


# ===== JSON TEXT =====
# Same output as json.dumps(..., indent=indent, ensure_ascii=False) on the dicts
# above (compact separators when indent is None), without nesting calls.

def _newline(indent: Optional[int], level: int) -> str:
    return "" if indent is None else "\n" + " " * (indent * level)


def _member(key: str, value: Any, indent: Optional[int], level: int) -> str:
    colon = ":" if indent is None else ": "
    return f"{_newline(indent, level)}{json.dumps(key)}{colon}{json.dumps(value, ensure_ascii=False)}"


def _iter_view_json(view: TreeNodeView, level: int, indent: Optional[int]) -> Iterator[str]:
    colon = ":" if indent is None else ": "
    # Items are either views still to open or literal text
    stack: List[Any] = [(view, level)]
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            yield item
            continue

        current, depth = item
        members = ",".join(_member(key, value, indent, depth + 1) for key, value in _view_fields(current).items())
        children_key = f",{_newline(indent, depth + 1)}\"children\"{colon}["
        if not current.children:
            yield "{" + members + children_key + "]" + _newline(indent, depth) + "}"
            continue

        yield "{" + members + children_key
        stack.append(_newline(indent, depth + 1) + "]" + _newline(indent, depth) + "}")
        for position in reversed(range(len(current.children))):
            stack.append((current.children[position], depth + 2))
            stack.append(("," if position else "") + _newline(indent, depth + 2))


def render_view_json(view: TreeNodeView, indent: Optional[int] = None) -> str:
    """JSON text of a view and its whole subtree."""
    return "".join(_iter_view_json(view, 0, indent))


def render_snapshot_json(snapshot: TreeSnapshot, indent: Optional[int] = 2) -> str:
    _check_version(snapshot)
    colon = ":" if indent is None else ": "
    parts = ["{", _newline(indent, 1), '"roots"', colon, "["]
    for position, root in enumerate(snapshot.roots):
        parts.append(("," if position else "") + _newline(indent, 2))
        parts.extend(_iter_view_json(root, 2, indent))
    if snapshot.roots:
        parts.append(_newline(indent, 1))
    parts.append("]")
    parts.append("," + _member("exportDate", snapshot.export_date.isoformat(), indent, 1))
    parts.append("," + _member("totalNodes", snapshot.total_nodes, indent, 1))
    parts.append("," + _member("exportVersion", snapshot.export_version, indent, 1))
    parts.append(_newline(indent, 0) + "}")
    return "".join(parts)


def export_filename(export_date: datetime) -> str:
    """Download name for a snapshot, e.g. tree_export_20250101_120000.json"""
    return f"tree_export_{export_date:%Y%m%d_%H%M%S}.json"
