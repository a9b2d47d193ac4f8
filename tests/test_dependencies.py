# tests/test_dependencies.py

from __future__ import annotations

import pytest

from dagenda.tasks.dependencies import find_sources, is_reachable, linearize, order_subset
from dagenda.tasks.task_models import MalformedTaskError, TaskNotFoundError, make_task

from .fakes import build_store


def test_linearize_chain_is_leaves_first() -> None:
    store = build_store(["root", "a", "b"], [("root", "a"), ("a", "b")])
    assert linearize("root", store) == ["b", "a", "root"]


def test_linearize_diamond_emits_shared_child_once() -> None:
    store = build_store(
        ["root", "a", "b", "c"],
        [("root", "a"), ("root", "b"), ("a", "c"), ("b", "c")],
    )
    assert linearize("root", store) == ["c", "a", "b", "root"]


def test_linearize_follows_children_order() -> None:
    store = build_store(["root", "x", "y", "z"], [("root", "z"), ("root", "x"), ("root", "y")])
    assert linearize("root", store) == ["z", "x", "y", "root"]


def test_linearize_only_covers_root_subgraph() -> None:
    store = build_store(["root", "a", "other"], [("root", "a")])
    assert linearize("a", store) == ["a"]
    assert "other" not in linearize("root", store)


def test_done_tasks_are_pruned() -> None:
    store = build_store(
        ["root", "a", "b", "c"],
        [("root", "a"), ("a", "c"), ("root", "b")],
        done=["a"],
    )
    # c is only reachable through the done task a.
    assert linearize("root", store) == ["b", "root"]


def test_task_under_done_task_is_kept_when_reachable_elsewhere() -> None:
    store = build_store(
        ["root", "a", "b", "c"],
        [("root", "a"), ("a", "c"), ("root", "b"), ("b", "c")],
        done=["a"],
    )
    assert linearize("root", store) == ["c", "b", "root"]


def test_done_root_yields_nothing() -> None:
    store = build_store(["root", "a"], [("root", "a")], done=["root"])
    assert linearize("root", store) == []


def test_child_always_precedes_parent() -> None:
    edges = [("r", "a"), ("r", "b"), ("a", "d"), ("b", "d"), ("d", "e"), ("b", "f"), ("f", "e")]
    store = build_store(["r", "a", "b", "d", "e", "f"], edges)
    order = linearize("r", store)
    assert sorted(order) == sorted(store)
    for parent, child in edges:
        assert order.index(child) < order.index(parent)


def test_missing_root_raises() -> None:
    with pytest.raises(TaskNotFoundError):
        linearize("nope", build_store(["a"]))


def test_dangling_child_is_malformed() -> None:
    store = {"a": make_task(uuid="a", children=["ghost"])}
    with pytest.raises(MalformedTaskError):
        linearize("a", store)


def test_deep_chain_does_not_hit_recursion_limit() -> None:
    n = 5000
    names = [f"t{i}" for i in range(n)]
    store = build_store(names, [(names[i], names[i + 1]) for i in range(n - 1)])
    order = linearize("t0", store)
    assert order[0] == names[-1]
    assert order[-1] == "t0"
    assert len(order) == n


def test_order_subset_puts_dependency_before_dependent() -> None:
    # publish needs report, report needs data: leaves come first.
    store = build_store(
        ["report", "data", "publish"], [("report", "data"), ("publish", "report")]
    )
    assert order_subset({"data", "report"}, store) == ["data", "report"]
    reordered = dict(reversed(list(store.items())))
    assert order_subset({"report", "data"}, reordered) == ["data", "report"]


def test_order_subset_is_consistent_with_whole_graph() -> None:
    store = build_store(
        ["p", "q", "a", "b", "c"],
        [("p", "a"), ("a", "b"), ("q", "c"), ("c", "b")],
    )
    order = order_subset({"p", "b", "c", "q"}, store)
    assert order.index("b") < order.index("c") < order.index("q")
    assert order.index("b") < order.index("p")


def test_order_subset_leaves_store_untouched() -> None:
    store = build_store(["a", "b"], [("a", "b")])
    before = dict(store)
    order_subset({"a", "b"}, store)
    assert store == before


def test_order_subset_skips_done_tasks() -> None:
    store = build_store(["a", "b"], [("a", "b")], done=["b"])
    assert order_subset({"a", "b"}, store) == ["a"]


def test_find_sources_and_reachability() -> None:
    store = build_store(["a", "b", "c", "d"], [("a", "b"), ("b", "c")])
    assert find_sources(store) == ["a", "d"]
    assert is_reachable("a", "c", store)
    assert is_reachable("c", "c", store)
    assert not is_reachable("c", "a", store)
    assert not is_reachable("d", "a", store)
