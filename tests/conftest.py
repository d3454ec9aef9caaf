"""Pytest configuration and shared fixtures."""

from collections.abc import Iterator

import pytest
from stubs import CountdownState, StubState, bandit, chain

from puctree.mcts import Node


@pytest.fixture
def bandit_state() -> StubState:
    """Three actions with values [0.5, -0.2, 0.1], each ending the game."""
    return bandit([0.5, -0.2, 0.1])


@pytest.fixture
def chain_state() -> StubState:
    """root -> child -> grandchild, grandchild valued 0.8."""
    return chain(0.8)


@pytest.fixture
def countdown() -> CountdownState:
    return CountdownState(12)


def iter_tree(node: Node) -> Iterator[Node]:
    """All materialized nodes of the tree rooted at `node`."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if current.children is not None:
            stack.extend(child for child in current.children if child is not None)


@pytest.fixture
def walk_tree():
    return iter_tree
