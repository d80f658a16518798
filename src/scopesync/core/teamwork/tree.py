"""
Task hierarchy reconstruction.

Teamwork returns the tasks of a task list as a flat, paged collection where
each task names its parent by id. build_task_tree turns that into a forest
of top-level tasks with nested children.
"""

from collections import defaultdict
from collections.abc import Iterable

from scopesync.core.teamwork.models import Task


def dedupe_tasks(tasks: Iterable[Task]) -> list[Task]:
    """
    Drop repeated task ids, keeping the first occurrence's position and the
    last occurrence's data.
    """
    by_id: dict[str, Task] = {}
    for task in tasks:
        by_id[task.id] = task
    return list(by_id.values())


def build_task_tree(tasks: Iterable[Task]) -> list[Task]:
    """
    Build a forest from a flat task list.

    Roots are tasks whose parent is the empty string. Each task's children
    are the tasks naming it as parent, in input order. The parent index is
    built once, so the whole tree costs O(n). Tasks whose parent is not in
    the list are unreachable from any root and are left out.

    Input tasks are not mutated; the returned nodes are copies.

    Args:
        tasks: Flat tasks, in any order, for a single task list

    Returns:
        Top-level tasks with children populated recursively
    """
    unique = dedupe_tasks(tasks)

    children_of: dict[str, list[Task]] = defaultdict(list)
    for task in unique:
        children_of[task.parent].append(task)

    roots = children_of.get("", [])

    # depth-first from the roots; a task is visited at most once
    order: list[Task] = []
    visited: set[str] = set()
    pending = list(roots)
    while pending:
        task = pending.pop()
        if task.id in visited:
            continue
        visited.add(task.id)
        order.append(task)
        pending.extend(children_of.get(task.id, []))

    # every child is visited after its parent, so build in reverse
    built: dict[str, Task] = {}
    for task in reversed(order):
        kids = [built[c.id] for c in children_of.get(task.id, []) if c.id in built]
        built[task.id] = task.model_copy(update={"children": kids})

    return [built[root.id] for root in roots if root.id in built]


def flatten_tree(roots: Iterable[Task]) -> list[Task]:
    """All nodes of a forest, depth first, with children left attached."""
    nodes: list[Task] = []
    for root in roots:
        nodes.extend(root.walk())
    return nodes
