"""Project file tree model.

Usage::

    from peaks.filetree import FileNode, parse_tree, walk

    tree = parse_tree(raw_json_list)
    for path, node, depth in walk(tree):
        print("  " * depth + path)
"""

from peaks.filetree.models import (
    FileNode,
    FileTreeError,
    NodeKind,
    TreeDiff,
    all_paths,
    copy_tree,
    count_files,
    diff_trees,
    file_map,
    find_node,
    join_path,
    parse_tree,
    tree_payload,
    walk,
)

__all__ = [
    "FileNode",
    "FileTreeError",
    "NodeKind",
    "TreeDiff",
    "all_paths",
    "copy_tree",
    "count_files",
    "diff_trees",
    "file_map",
    "find_node",
    "join_path",
    "parse_tree",
    "tree_payload",
    "walk",
]
