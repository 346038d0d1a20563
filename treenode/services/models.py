"""
Data models for the node hierarchy: stored entities, views and export snapshots.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

NAME_MAX_LENGTH = 50
EXPORT_VERSION = "1.0"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TreeNode:
    """A node as stored in the database. Links are id references only."""
    name: str
    parent_id: Optional[int] = None
    id: Optional[int] = None
    created_at: datetime = field(default_factory=utc_now)
    # Populated only by NodeStore.find_with_children
    children: List['TreeNode'] = field(default_factory=list)


@dataclass
class TreeNodeView:
    """What the engine hands back to callers. Shallow views keep `children` empty."""
    id: int
    name: str
    parent_id: Optional[int]
    created_at: datetime
    children: List['TreeNodeView'] = field(default_factory=list)

    @classmethod
    def shallow(cls, node: TreeNode) -> 'TreeNodeView':
        return cls(id=node.id, name=node.name, parent_id=node.parent_id, created_at=node.created_at)


@dataclass
class TreeSnapshot:
    """Point-in-time export of the whole forest."""
    roots: List[TreeNodeView]
    total_nodes: int
    export_date: datetime = field(default_factory=utc_now)
    export_version: str = EXPORT_VERSION
