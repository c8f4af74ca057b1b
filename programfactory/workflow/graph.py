"""The fixed step graph of a program generation session.

Edges come in two flavours. Unconditional edges are followed by
:meth:`WorkflowManager.advance` once the step's artifact exists; gated
edges are followed by a human decision, where ``approve`` takes the forward
edge and anything else loops back to the gate's retry step.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, NamedTuple, Optional, Tuple

from ..contracts import Route, StepDataKey, WorkflowStep

S = WorkflowStep


class Gate(NamedTuple):
    approve: WorkflowStep
    retry: WorkflowStep


PRE_ROUTE_STEPS: FrozenSet[WorkflowStep] = frozenset(
    {S.BRIEF, S.FRAMEWORK_SELECTION, S.ROUTE_SELECTION}
)

ROUTE_STEPS: Dict[Route, Tuple[WorkflowStep, ...]] = {
    Route.A: (
        S.ROUTE_A_UPLOAD,
        S.CONTENT_REVIEW,
        S.APPROACH_SELECTION_A,
        S.ARC_GENERATION,
        S.ARC_REVIEW,
    ),
    Route.B: (S.ROUTE_B_RESEARCH, S.APPROACH_SELECTION_B),
}

# Forward edges shared by both routes.
_COMMON_EDGES: Dict[WorkflowStep, WorkflowStep] = {
    S.BRIEF: S.FRAMEWORK_SELECTION,
    S.FRAMEWORK_SELECTION: S.ROUTE_SELECTION,
    S.MATRIX_GENERATION: S.MATRIX_REVIEW,
    S.MATRIX_REVIEW: S.SAMPLE_GENERATION,
    S.SAMPLE_GENERATION: S.SAMPLE_VALIDATION,
    S.SAMPLE_VALIDATION: S.BATCH_GENERATION,
    S.BATCH_GENERATION: S.COMPLETED,
}

_ROUTE_EDGES: Dict[Route, Dict[WorkflowStep, WorkflowStep]] = {
    Route.A: {
        S.ROUTE_SELECTION: S.ROUTE_A_UPLOAD,
        S.ROUTE_A_UPLOAD: S.CONTENT_REVIEW,
        S.CONTENT_REVIEW: S.APPROACH_SELECTION_A,
        S.APPROACH_SELECTION_A: S.ARC_GENERATION,
        S.ARC_GENERATION: S.ARC_REVIEW,
        S.ARC_REVIEW: S.MATRIX_GENERATION,
    },
    Route.B: {
        S.ROUTE_SELECTION: S.ROUTE_B_RESEARCH,
        S.ROUTE_B_RESEARCH: S.APPROACH_SELECTION_B,
        S.APPROACH_SELECTION_B: S.MATRIX_GENERATION,
    },
}

GATES: Dict[WorkflowStep, Gate] = {
    S.CONTENT_REVIEW: Gate(approve=S.APPROACH_SELECTION_A, retry=S.ROUTE_A_UPLOAD),
    S.ARC_REVIEW: Gate(approve=S.MATRIX_GENERATION, retry=S.ARC_GENERATION),
    S.MATRIX_REVIEW: Gate(approve=S.SAMPLE_GENERATION, retry=S.MATRIX_GENERATION),
    S.SAMPLE_VALIDATION: Gate(approve=S.BATCH_GENERATION, retry=S.SAMPLE_GENERATION),
}

# Step data that must exist before the step's unconditional edge is taken.
# Leaving route_selection additionally requires a committed route.
REQUIRED_DATA: Dict[WorkflowStep, Tuple[StepDataKey, ...]] = {
    S.BRIEF: (StepDataKey.BRIEF,),
    S.FRAMEWORK_SELECTION: (StepDataKey.SELECTED_FRAMEWORK,),
    S.ROUTE_A_UPLOAD: (StepDataKey.EXTRACTED_CONTENT,),
    S.APPROACH_SELECTION_A: (StepDataKey.SELECTED_APPROACH,),
    S.ARC_GENERATION: (StepDataKey.LEARNING_ARC,),
    S.ROUTE_B_RESEARCH: (StepDataKey.RESEARCH_RESULTS,),
    S.APPROACH_SELECTION_B: (StepDataKey.SELECTED_APPROACH,),
    S.MATRIX_GENERATION: (StepDataKey.PROGRAM_MATRIX,),
    S.SAMPLE_GENERATION: (StepDataKey.SAMPLE_CONTENT,),
    S.BATCH_GENERATION: (StepDataKey.ALL_CONTENT,),
}

STEP_NAMES: Dict[WorkflowStep, str] = {
    S.BRIEF: "Program Brief",
    S.FRAMEWORK_SELECTION: "Framework Selection",
    S.ROUTE_SELECTION: "Route Selection",
    S.ROUTE_A_UPLOAD: "Content Upload",
    S.CONTENT_REVIEW: "Content Review",
    S.APPROACH_SELECTION_A: "Approach Selection",
    S.ARC_GENERATION: "Learning Arc Generation",
    S.ARC_REVIEW: "Learning Arc Review",
    S.ROUTE_B_RESEARCH: "Field Research",
    S.APPROACH_SELECTION_B: "Approach Selection",
    S.MATRIX_GENERATION: "Program Matrix Generation",
    S.MATRIX_REVIEW: "Program Matrix Review",
    S.SAMPLE_GENERATION: "Sample Generation",
    S.SAMPLE_VALIDATION: "Sample Validation",
    S.BATCH_GENERATION: "Batch Generation",
    S.COMPLETED: "Completed",
}


def steps_for_route(route: Optional[Route]) -> FrozenSet[WorkflowStep]:
    """Every step a session on ``route`` may occupy.

    Without a route only the steps before route selection are reachable.
    """
    if route is None:
        return PRE_ROUTE_STEPS
    common = set(PRE_ROUTE_STEPS) | set(_COMMON_EDGES) | set(_COMMON_EDGES.values())
    return frozenset(common | set(ROUTE_STEPS[route]))


def next_step(step: WorkflowStep, route: Optional[Route]) -> Optional[WorkflowStep]:
    """Return the forward edge out of ``step``, or ``None`` when there is none.

    For gates this is the approve edge. ``route_selection`` has no forward
    edge until a route is committed.
    """
    if step in _COMMON_EDGES:
        return _COMMON_EDGES[step]
    if route is None:
        return None
    return _ROUTE_EDGES[route].get(step)


def successors(step: WorkflowStep, route: Optional[Route]) -> FrozenSet[WorkflowStep]:
    """Legal targets of ``advance_to_step`` from ``step`` under ``route``."""
    if step not in steps_for_route(route):
        return frozenset()
    targets = set()
    forward = next_step(step, route)
    if forward is not None:
        targets.add(forward)
    gate = GATES.get(step)
    if gate is not None:
        targets.add(gate.retry)
    return frozenset(targets)


def is_legal(step: WorkflowStep, target: WorkflowStep, route: Optional[Route]) -> bool:
    return target in successors(step, route)


def is_gate(step: WorkflowStep) -> bool:
    return step in GATES


def decision_target(step: WorkflowStep, approved: bool) -> WorkflowStep:
    """Where a decision at gate ``step`` leads."""
    gate = GATES[step]
    return gate.approve if approved else gate.retry


def step_name(step: WorkflowStep) -> str:
    return STEP_NAMES.get(WorkflowStep(step), str(step))
