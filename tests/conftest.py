"""Shared fixtures for lineage tests."""
import pytest

from lineage.analyzer.tracker import DataLineageTracker


# The sample program the original tool was exercised with
SAMPLE_PROGRAM = """
const globalVar = 42;
function outer() {
    let outerVar = globalVar + 1;
    function inner() {
        const innerVar = outerVar * 2;
        return innerVar;
    }
    return inner() + outerVar;
}
class Example {
    constructor() {
        this.classVar = globalVar;
    }
    method() {
        return this.classVar + globalVar;
    }
}
"""


@pytest.fixture
def tracker():
    """Fresh JavaScript tracker."""
    return DataLineageTracker('javascript')


@pytest.fixture
def analyze(tracker):
    """Analyze a JavaScript snippet and return its lineage graph."""
    return tracker.analyze_source


def refs_named(graph, name):
    """References with the given name, in source order."""
    return [r for r in graph.references() if r.name == name]


def only_decl(graph, name):
    """The single declaration named ``name``."""
    matches = graph.find(name)
    assert len(matches) == 1, f"Expected one declaration of {name}, found {matches}"
    return matches[0]
