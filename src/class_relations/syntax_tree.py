# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Small helpers over tree-sitter nodes shared by the analyzer and the extractor."""

from typing import Iterator

from tree_sitter import Node


def line_of(node: Node) -> int:
    """1-based line number of a node's start."""
    return node.start_point[0] + 1


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal of a subtree without recursion."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))
