"""Unit tests for step stores."""

from __future__ import annotations

import pytest

from motif_flow.store import Store, create_store


def counter(set_state, get_state):
    return {
        "count": 0,
        "label": "clicks",
        "increment": lambda: set_state(lambda s: {"count": s["count"] + 1}),
        "read": lambda: get_state()["count"],
    }


def test_store_exposes_initial_state_and_actions() -> None:
    store = create_store(counter)

    state = store.get_state()
    state["increment"]()
    state["increment"]()

    assert store.get_state()["count"] == 2
    assert store.get_state()["read"]() == 2
    assert store.get_initial_state()["count"] == 0


def test_set_state_merges_and_notifies_with_previous_state() -> None:
    store = Store(counter)
    seen = []
    store.subscribe(lambda state, previous: seen.append((previous["count"], state["count"])))

    before = store.get_state()
    store.set_state({"count": 5})

    assert seen == [(0, 5)]
    assert store.get_state() is not before
    assert store.get_state()["label"] == "clicks"


def test_set_state_without_changes_does_not_notify() -> None:
    store = Store(counter)
    seen = []
    store.subscribe(lambda state, previous: seen.append(state))

    store.set_state({"label": store.get_state()["label"]})
    store.set_state(lambda s: None)

    assert seen == []


def test_set_state_replace_drops_other_keys() -> None:
    store = Store(counter)
    store.set_state({"count": 1}, replace=True)
    assert store.get_state() == {"count": 1}


def test_unsubscribe_stops_notifications() -> None:
    store = Store(counter)
    seen = []
    unsubscribe = store.subscribe(lambda state, previous: seen.append(state["count"]))

    store.set_state({"count": 1})
    unsubscribe()
    unsubscribe()
    store.set_state({"count": 2})

    assert seen == [1]


def test_factory_must_return_a_mapping() -> None:
    with pytest.raises(TypeError):
        Store(lambda set_state, get_state: [1, 2])
