"""
treenode: a named node hierarchy with cycle-safe moves and full-tree export.
"""

__version__ = "1.0.0"
