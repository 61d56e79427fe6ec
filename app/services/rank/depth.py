"""
Subtree depth (rank) calculation.

rank(u) = 0 if u has no children, otherwise 1 + max(rank(c) for each child c).

The walk is an explicit-stack post-order traversal rather than recursion so
long sponsor chains cannot exhaust the interpreter's recursion limit. It
gives the same results as the recursive definition, including on cyclic
data: a node reached again while it is still being computed counts as 0.
"""

import logging

from app.services.rank.types import ChildrenMap

logger = logging.getLogger(__name__)

_NO_CHILDREN = -1


def calculate_subtree_depth(
    user_id: str,
    children_map: ChildrenMap,
    memo: dict[str, int] | None = None,
    in_progress: set[str] | None = None,
) -> int:
    """
    Compute the rank of `user_id` within `children_map`.

    Args:
        user_id: Root of the subtree to measure
        children_map: sponsor -> direct downline ids
        memo: Ranks already computed against this same map. Pass one dict
            across calls to reuse shared subtrees.
        in_progress: Ids currently being computed (cycle guard). Normally
            left as None; every id added here is removed before returning.

    Returns:
        Non-negative rank. Users missing from the map have rank 0.
    """
    memo = {} if memo is None else memo
    in_progress = set() if in_progress is None else in_progress

    if user_id in memo:
        return memo[user_id]
    if user_id in in_progress:
        logger.warning(f"Cycle detected in sponsor chain at user {user_id}")
        return 0

    # Each frame: [node id, iterator over its children, best child rank so far]
    in_progress.add(user_id)
    stack: list[list] = [[user_id, iter(children_map.get(user_id, ())), _NO_CHILDREN]]
    result = 0

    try:
        while stack:
            frame = stack[-1]
            child = next(frame[1], None)

            if child is None:
                node, _, best = stack.pop()
                rank = best + 1  # _NO_CHILDREN + 1 == 0
                memo[node] = rank
                in_progress.discard(node)
                if stack:
                    stack[-1][2] = max(stack[-1][2], rank)
                else:
                    result = rank
                continue

            if child in memo:
                frame[2] = max(frame[2], memo[child])
            elif child in in_progress:
                logger.warning(f"Cycle detected in sponsor chain at user {child}")
                frame[2] = max(frame[2], 0)
            else:
                in_progress.add(child)
                stack.append([child, iter(children_map.get(child, ())), _NO_CHILDREN])
    finally:
        for node, _, _ in stack:
            in_progress.discard(node)

    return result
