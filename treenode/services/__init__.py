"""
Service layer for treenode.
Contains the hierarchy engine, its persistence and the export formatter.
"""

from .exceptions import (
    TreeError,
    NotFoundError,
    DuplicateNameError,
    CyclicReferenceError,
    ForbiddenError,
    StoreFailureError,
)
from .models import TreeNode, TreeNodeView, TreeSnapshot
from .persistence import NodeStore
from .hierarchy import HierarchyEngine
from .exporter import node_view_to_dict, snapshot_to_dict, render_snapshot_json, render_view_json, export_filename

__all__ = [
    'TreeError',
    'NotFoundError',
    'DuplicateNameError',
    'CyclicReferenceError',
    'ForbiddenError',
    'StoreFailureError',
    'TreeNode',
    'TreeNodeView',
    'TreeSnapshot',
    'NodeStore',
    'HierarchyEngine',
    'node_view_to_dict',
    'snapshot_to_dict',
    'render_snapshot_json',
    'render_view_json',
    'export_filename'
]
