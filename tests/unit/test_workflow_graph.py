import itertools

import pytest

from programfactory.contracts import Route, WorkflowStep
from programfactory.workflow import graph

S = WorkflowStep

EXPECTED_A = {
    S.BRIEF: {S.FRAMEWORK_SELECTION},
    S.FRAMEWORK_SELECTION: {S.ROUTE_SELECTION},
    S.ROUTE_SELECTION: {S.ROUTE_A_UPLOAD},
    S.ROUTE_A_UPLOAD: {S.CONTENT_REVIEW},
    S.CONTENT_REVIEW: {S.APPROACH_SELECTION_A, S.ROUTE_A_UPLOAD},
    S.APPROACH_SELECTION_A: {S.ARC_GENERATION},
    S.ARC_GENERATION: {S.ARC_REVIEW},
    S.ARC_REVIEW: {S.MATRIX_GENERATION, S.ARC_GENERATION},
    S.MATRIX_GENERATION: {S.MATRIX_REVIEW},
    S.MATRIX_REVIEW: {S.SAMPLE_GENERATION, S.MATRIX_GENERATION},
    S.SAMPLE_GENERATION: {S.SAMPLE_VALIDATION},
    S.SAMPLE_VALIDATION: {S.BATCH_GENERATION, S.SAMPLE_GENERATION},
    S.BATCH_GENERATION: {S.COMPLETED},
    S.COMPLETED: set(),
}

EXPECTED_B = {
    S.BRIEF: {S.FRAMEWORK_SELECTION},
    S.FRAMEWORK_SELECTION: {S.ROUTE_SELECTION},
    S.ROUTE_SELECTION: {S.ROUTE_B_RESEARCH},
    S.ROUTE_B_RESEARCH: {S.APPROACH_SELECTION_B},
    S.APPROACH_SELECTION_B: {S.MATRIX_GENERATION},
    S.MATRIX_GENERATION: {S.MATRIX_REVIEW},
    S.MATRIX_REVIEW: {S.SAMPLE_GENERATION, S.MATRIX_GENERATION},
    S.SAMPLE_GENERATION: {S.SAMPLE_VALIDATION},
    S.SAMPLE_VALIDATION: {S.BATCH_GENERATION, S.SAMPLE_GENERATION},
    S.BATCH_GENERATION: {S.COMPLETED},
    S.COMPLETED: set(),
}


@pytest.mark.parametrize("route, expected", [(Route.A, EXPECTED_A), (Route.B, EXPECTED_B)])
def test_successor_sets_for_every_step_and_target(route, expected):
    for step, target in itertools.product(WorkflowStep, WorkflowStep):
        legal = target in expected.get(step, set())
        assert graph.is_legal(step, target, route) is legal, (
            f"{step.value} -> {target.value} under route {route.value}"
        )


def test_cross_route_steps_have_no_successors():
    for step in graph.ROUTE_STEPS[Route.B]:
        assert graph.successors(step, Route.A) == frozenset()
    for step in graph.ROUTE_STEPS[Route.A]:
        assert graph.successors(step, Route.B) == frozenset()
    assert not graph.is_legal(S.ROUTE_SELECTION, S.ROUTE_B_RESEARCH, Route.A)
    assert not graph.is_legal(S.ROUTE_SELECTION, S.ROUTE_A_UPLOAD, Route.B)


def test_route_selection_is_a_dead_end_without_route():
    assert graph.successors(S.ROUTE_SELECTION, None) == frozenset()
    assert graph.next_step(S.ROUTE_SELECTION, None) is None
    assert graph.successors(S.BRIEF, None) == {S.FRAMEWORK_SELECTION}


def test_gates_and_decision_targets():
    assert set(graph.GATES) == {
        S.CONTENT_REVIEW,
        S.ARC_REVIEW,
        S.MATRIX_REVIEW,
        S.SAMPLE_VALIDATION,
    }
    assert graph.decision_target(S.CONTENT_REVIEW, True) == S.APPROACH_SELECTION_A
    assert graph.decision_target(S.CONTENT_REVIEW, False) == S.ROUTE_A_UPLOAD
    assert graph.decision_target(S.SAMPLE_VALIDATION, False) == S.SAMPLE_GENERATION
    assert not graph.is_gate(S.MATRIX_GENERATION)


def test_every_step_has_a_name():
    for step in WorkflowStep:
        assert graph.step_name(step) != step.value
    assert graph.step_name("arc_review") == "Learning Arc Review"
