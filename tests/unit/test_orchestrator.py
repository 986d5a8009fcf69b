from __future__ import annotations

from typing import Dict, List, Optional

import pytest

from raidesk.core import responses
from raidesk.core.errors import GatewayServerError, GatewayTimeoutError, PlanNotFoundError, SessionBusyError
from raidesk.core.orchestrator import SessionOrchestrator
from raidesk.core.schemas import (
    AppMode,
    ClassificationResult,
    ConversationStep,
    PlanDiff,
    PlansResult,
    PurposeMechanismResult,
    Session,
    new_session,
)
from raidesk.gateway.fixtures import MOCK_CATEGORIES
from raidesk.gateway.mock_client import MockGateway
from raidesk.storage.base import SessionStorage

CONCEPT = "AI software that finds lung nodules on CT"


class MemoryStorage(SessionStorage):
    def __init__(self) -> None:
        self.records: Dict[str, Session] = {}
        self.saves = 0

    def save(self, session: Session) -> None:
        self.saves += 1
        self.records[session.session_id] = session.model_copy(deep=True)

    def load(self, session_id: str) -> Optional[Session]:
        record = self.records.get(session_id)
        return record.model_copy(deep=True) if record else None

    def delete(self, session_id: str) -> None:
        self.records.pop(session_id, None)

    def list_sessions(self) -> List[str]:
        return list(self.records)


class FailingGateway(MockGateway):
    def classify_device(self, concept, context=None, cancel=None):
        raise GatewayServerError(status_code=500)


def _orchestrator(gateway=None, storage=None) -> SessionOrchestrator:
    orchestrator = SessionOrchestrator(gateway or MockGateway(delay_scale=0.0), storage or MemoryStorage())
    orchestrator.start()
    return orchestrator


def _advance_to_plans(orchestrator: SessionOrchestrator) -> Session:
    orchestrator.handle_message(CONCEPT)
    orchestrator.handle_message("yes")
    orchestrator.handle_message("proceed")
    return orchestrator.handle_message("next")


def test_start_greets_and_waits_for_concept():
    storage = MemoryStorage()
    orchestrator = _orchestrator(storage=storage)
    session = orchestrator.session

    assert session.current_step is ConversationStep.CONCEPT_INPUT
    assert session.mode is AppMode.MOCK
    assert [message.content for message in session.messages] == [responses.GREETING]
    assert session.session_id in storage.records


def test_concept_is_classified_even_when_it_contains_keywords():
    orchestrator = _orchestrator()

    session = orchestrator.handle_message(CONCEPT)

    assert session.current_step is ConversationStep.DEVICE_CLASSIFICATION
    assert len(session.messages) == 3
    user, reply = session.messages[-2:]
    assert user.role == "user" and user.content == CONCEPT
    assert reply.role == "assistant"
    assert isinstance(reply.metadata, ClassificationResult)
    assert session.concept == CONCEPT
    assert session.classification.risk_class == "II"
    assert len(session.suggested_categories) == 2
    assert [node.id for node in session.flowchart_nodes] == ["node-1-classification"]
    assert session.is_loading is False


def test_blank_concept_reprompts():
    orchestrator = _orchestrator()

    session = orchestrator.handle_message("   ")

    assert session.current_step is ConversationStep.CONCEPT_INPUT
    assert session.messages[-1].content == responses.CONCEPT_PROMPT
    assert session.classification is None


def test_message_before_start_greets_first():
    orchestrator = SessionOrchestrator(MockGateway(delay_scale=0.0), MemoryStorage())

    session = orchestrator.handle_message(CONCEPT)

    assert session.messages[0].content == responses.GREETING
    assert session.current_step is ConversationStep.DEVICE_CLASSIFICATION


def test_full_workflow_reaches_final_confirmation():
    storage = MemoryStorage()
    orchestrator = _orchestrator(storage=storage)

    orchestrator.handle_message(CONCEPT)
    session = orchestrator.handle_message("yes")
    assert session.current_step is ConversationStep.PRODUCT_CATEGORY
    assert session.messages[-1].content == responses.ACKNOWLEDGE_CATEGORY

    session = orchestrator.handle_message("proceed")
    assert session.current_step is ConversationStep.PURPOSE_MECHANISM
    assert session.category == MOCK_CATEGORIES[0]
    assert isinstance(session.messages[-1].metadata, PurposeMechanismResult)

    session = orchestrator.handle_message("next")
    assert session.current_step is ConversationStep.PLAN_GENERATION
    assert [plan.id for plan in session.plans] == [
        "plan-fastest",
        "plan-normal",
        "plan-conservative",
        "plan-innovative",
    ]
    assert session.messages[-1].metadata == PlansResult(plan_ids=[plan.id for plan in session.plans])

    session = orchestrator.select_plan(session.find_plan("plan-normal"))
    assert session.current_step is ConversationStep.FINAL_CONFIRMATION
    assert session.selected_plan.id == "plan-normal"
    assert session.messages[-1].content == responses.plan_selected("Standard path")

    labels = [node.label for node in session.flowchart_nodes]
    assert labels == [
        "Medical device: Yes",
        MOCK_CATEGORIES[0].name,
        "Intended use & mechanism",
        "4 strategies generated",
        "Selected: Standard path",
    ]
    assert len(session.flowchart_edges) == len(session.flowchart_nodes) - 1

    session = orchestrator.handle_message("anything else?")
    assert session.current_step is ConversationStep.FINAL_CONFIRMATION
    assert session.messages[-1].content == responses.WORKFLOW_COMPLETE
    assert storage.records[session.session_id] == session


@pytest.mark.parametrize(
    "text,expected_step,expected_reply",
    [
        ("modify", ConversationStep.CONCEPT_INPUT, responses.CLASSIFICATION_REENTRY),
        ("what does this mean?", ConversationStep.DEVICE_CLASSIFICATION, responses.CLASSIFICATION_REPROMPT),
    ],
)
def test_classification_step_transitions(text, expected_step, expected_reply):
    orchestrator = _orchestrator()
    orchestrator.handle_message(CONCEPT)

    session = orchestrator.handle_message(text)

    assert session.current_step is expected_step
    assert session.messages[-1].content == expected_reply


def test_category_step_can_restart_or_reprompt():
    orchestrator = _orchestrator()
    orchestrator.handle_message(CONCEPT)
    orchestrator.handle_message("yes")

    session = orchestrator.handle_message("what does this mean?")
    assert session.current_step is ConversationStep.PRODUCT_CATEGORY
    assert session.messages[-1].content == responses.CATEGORY_REPROMPT

    session = orchestrator.handle_message("change it")
    assert session.current_step is ConversationStep.CONCEPT_INPUT
    assert session.messages[-1].content == responses.CATEGORY_RESTART


def test_purpose_step_can_restart():
    orchestrator = _orchestrator()
    orchestrator.handle_message(CONCEPT)
    orchestrator.handle_message("yes")
    orchestrator.handle_message("proceed")

    session = orchestrator.handle_message("again")

    assert session.current_step is ConversationStep.CONCEPT_INPUT
    assert session.messages[-1].content == responses.PURPOSE_RESTART


def test_purpose_step_without_results_does_not_generate():
    session = new_session(mode=AppMode.MOCK)
    session.current_step = ConversationStep.PURPOSE_MECHANISM
    orchestrator = SessionOrchestrator(MockGateway(delay_scale=0.0), MemoryStorage(), session=session)

    result = orchestrator.handle_message("proceed")

    assert result.current_step is ConversationStep.PURPOSE_MECHANISM
    assert result.messages[-1].content == responses.PURPOSE_MISSING_RESULTS
    assert result.plans is None


@pytest.mark.parametrize(
    "text,expected_reply",
    [
        ("ok", responses.PLANS_SELECT_HINT),
        ("change something", responses.PLANS_MODIFY_HINT),
        ("hmm", responses.PLANS_HELP),
    ],
)
def test_plan_step_hints(text, expected_reply):
    orchestrator = _orchestrator()
    _advance_to_plans(orchestrator)

    session = orchestrator.handle_message(text)

    assert session.current_step is ConversationStep.PLAN_GENERATION
    assert session.messages[-1].content == expected_reply


def test_regenerate_replaces_plans_and_adds_node():
    orchestrator = _orchestrator()
    before = _advance_to_plans(orchestrator)

    session = orchestrator.handle_message("please regenerate")

    assert session.current_step is ConversationStep.PLAN_GENERATION
    assert session.messages[-1].content == responses.PLANS_REGENERATED
    assert len(session.plans) == 4
    assert len(session.flowchart_nodes) == len(before.flowchart_nodes) + 1


def test_start_over_returns_to_concept():
    orchestrator = _orchestrator()
    _advance_to_plans(orchestrator)

    session = orchestrator.handle_message("let's start over")

    assert session.current_step is ConversationStep.CONCEPT_INPUT
    assert session.messages[-1].content == responses.PLANS_RESTART


def test_gateway_failure_apologizes_and_keeps_step():
    orchestrator = _orchestrator(gateway=FailingGateway(delay_scale=0.0))
    before = len(orchestrator.session.messages)

    session = orchestrator.handle_message(CONCEPT)

    assert session.current_step is ConversationStep.CONCEPT_INPUT
    assert len(session.messages) == before + 2
    assert session.messages[-1].content == responses.APOLOGY
    assert session.classification is None
    assert session.is_loading is False


def test_cancel_in_flight_call():
    holder = {}

    class CancellingGateway(MockGateway):
        def classify_device(self, concept, context=None, cancel=None):
            holder["cancelled"] = holder["orchestrator"].cancel()
            assert cancel.cancelled
            raise GatewayTimeoutError("Request was cancelled", cancelled=True)

    orchestrator = _orchestrator(gateway=CancellingGateway(delay_scale=0.0))
    holder["orchestrator"] = orchestrator

    session = orchestrator.handle_message(CONCEPT)

    assert holder["cancelled"] is True
    assert session.messages[-1].content == responses.APOLOGY
    assert orchestrator.cancel() is False


def test_busy_session_rejects_new_messages():
    orchestrator = _orchestrator()
    orchestrator.session.is_loading = True

    with pytest.raises(SessionBusyError):
        orchestrator.handle_message("hello")


def test_reset_discards_stored_session():
    storage = MemoryStorage()
    orchestrator = _orchestrator(storage=storage)
    old_id = orchestrator.session.session_id
    orchestrator.handle_message(CONCEPT)

    session = orchestrator.reset()

    assert session.session_id != old_id
    assert old_id not in storage.records
    assert storage.list_sessions() == [session.session_id]
    assert session.current_step is ConversationStep.CONCEPT_INPUT
    assert session.mode is AppMode.MOCK
    assert session.flowchart_nodes == []


def test_refine_plan_replaces_plan_and_records_diff():
    orchestrator = _orchestrator()
    before = _advance_to_plans(orchestrator)
    original = before.find_plan("plan-normal")

    session = orchestrator.refine_plan("plan-normal", "Shorter clinical phase")

    refined = session.find_plan("plan-normal")
    assert refined.description.endswith("[Requested changes: Shorter clinical phase]")
    assert [plan.id for plan in session.plans] == [plan.id for plan in before.plans]
    diff = session.messages[-1].metadata
    assert isinstance(diff, PlanDiff)
    assert diff.original_plan == original
    assert diff.modified_plan == refined
    assert session.flowchart_nodes[-1].label == "Refined: Standard path"
    assert session.current_step is ConversationStep.PLAN_GENERATION


def test_refine_unknown_plan_raises():
    orchestrator = _orchestrator()
    _advance_to_plans(orchestrator)

    with pytest.raises(PlanNotFoundError):
        orchestrator.refine_plan("plan-missing", "anything")


def test_panel_toggles_persist():
    storage = MemoryStorage()
    orchestrator = _orchestrator(storage=storage)

    session = orchestrator.toggle_summary()
    assert session.show_summary is True
    session = orchestrator.toggle_flowchart()
    assert session.show_flowchart is True
    session = orchestrator.toggle_summary()
    assert session.show_summary is False
    assert storage.records[session.session_id].show_flowchart is True


def test_snapshot_is_detached_from_live_session():
    orchestrator = _orchestrator()

    snapshot = orchestrator.snapshot()
    snapshot.messages.clear()

    assert len(orchestrator.session.messages) == 1


class CountingGateway(MockGateway):
    """Records every backend operation; operations named in ``failing`` raise."""

    def __init__(self) -> None:
        super().__init__(delay_scale=0.0)
        self.calls: List[str] = []
        self.failing: set = set()

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failing:
            raise GatewayServerError(status_code=503)

    def classify_device(self, concept, context=None, cancel=None):
        self._record("classify_device")
        return super().classify_device(concept, context, cancel)

    def generate_purpose_mechanism(self, concept, category, cancel=None):
        self._record("generate_purpose_mechanism")
        return super().generate_purpose_mechanism(concept, category, cancel)

    def generate_plans(self, classification, category, purpose_mechanism, cancel=None):
        self._record("generate_plans")
        return super().generate_plans(classification, category, purpose_mechanism, cancel)


_SCRIPTS = {
    ConversationStep.CONCEPT_INPUT: [],
    ConversationStep.DEVICE_CLASSIFICATION: [CONCEPT],
    ConversationStep.PRODUCT_CATEGORY: [CONCEPT, "yes"],
    ConversationStep.PURPOSE_MECHANISM: [CONCEPT, "yes", "proceed"],
    ConversationStep.PLAN_GENERATION: [CONCEPT, "yes", "proceed", "next"],
}


def _counting_orchestrator_at(step: ConversationStep):
    gateway = CountingGateway()
    orchestrator = _orchestrator(gateway=gateway)
    if step is ConversationStep.FINAL_CONFIRMATION:
        _advance_to_plans(orchestrator)
        orchestrator.select_plan(orchestrator.session.find_plan("plan-normal"))
    else:
        for text in _SCRIPTS[step]:
            orchestrator.handle_message(text)
    assert orchestrator.session.current_step is step
    gateway.calls.clear()
    return orchestrator, gateway


S = ConversationStep


@pytest.mark.parametrize(
    "step,text,expected_step,node_delta,expected_calls",
    [
        (S.CONCEPT_INPUT, CONCEPT, S.DEVICE_CLASSIFICATION, 1, ["classify_device"]),
        (S.CONCEPT_INPUT, "   ", S.CONCEPT_INPUT, 0, []),
        (S.DEVICE_CLASSIFICATION, "yes", S.PRODUCT_CATEGORY, 0, []),
        (S.DEVICE_CLASSIFICATION, "no, redo it", S.CONCEPT_INPUT, 0, []),
        (S.DEVICE_CLASSIFICATION, "hmm", S.DEVICE_CLASSIFICATION, 0, []),
        (S.PRODUCT_CATEGORY, "proceed", S.PURPOSE_MECHANISM, 2, ["generate_purpose_mechanism"]),
        (S.PRODUCT_CATEGORY, "change", S.CONCEPT_INPUT, 0, []),
        (S.PRODUCT_CATEGORY, "hmm", S.PRODUCT_CATEGORY, 0, []),
        (S.PURPOSE_MECHANISM, "next", S.PLAN_GENERATION, 1, ["generate_plans"]),
        (S.PURPOSE_MECHANISM, "again", S.CONCEPT_INPUT, 0, []),
        (S.PURPOSE_MECHANISM, "hmm", S.PURPOSE_MECHANISM, 0, []),
        (S.PLAN_GENERATION, "regenerate", S.PLAN_GENERATION, 1, ["generate_plans"]),
        (S.PLAN_GENERATION, "start over", S.CONCEPT_INPUT, 0, []),
        (S.PLAN_GENERATION, "ok", S.PLAN_GENERATION, 0, []),
        (S.PLAN_GENERATION, "change", S.PLAN_GENERATION, 0, []),
        (S.PLAN_GENERATION, "hmm", S.PLAN_GENERATION, 0, []),
        (S.FINAL_CONFIRMATION, "yes", S.FINAL_CONFIRMATION, 0, []),
        (S.FINAL_CONFIRMATION, "start over", S.FINAL_CONFIRMATION, 0, []),
    ],
)
def test_transition_table(step, text, expected_step, node_delta, expected_calls):
    orchestrator, gateway = _counting_orchestrator_at(step)
    messages_before = len(orchestrator.session.messages)
    nodes_before = len(orchestrator.session.flowchart_nodes)

    session = orchestrator.handle_message(text)

    assert session.current_step is expected_step
    assert len(session.messages) == messages_before + 2
    assert [message.role for message in session.messages[-2:]] == ["user", "assistant"]
    assert len(session.flowchart_nodes) == nodes_before + node_delta
    assert len(session.flowchart_edges) == len(session.flowchart_nodes) - 1
    assert gateway.calls == expected_calls


@pytest.mark.parametrize(
    "step,text,operation",
    [
        (S.CONCEPT_INPUT, CONCEPT, "classify_device"),
        (S.PRODUCT_CATEGORY, "proceed", "generate_purpose_mechanism"),
        (S.PURPOSE_MECHANISM, "next", "generate_plans"),
        (S.PLAN_GENERATION, "regenerate", "generate_plans"),
    ],
)
def test_remote_failure_leaves_session_untouched(step, text, operation):
    orchestrator, gateway = _counting_orchestrator_at(step)
    gateway.failing.add(operation)
    before = orchestrator.snapshot()

    session = orchestrator.handle_message(text)

    assert gateway.calls == [operation]
    assert session.current_step is step
    assert len(session.messages) == len(before.messages) + 2
    assert session.messages[-1].content == responses.APOLOGY
    assert session.is_loading is False
    assert session.classification == before.classification
    assert session.category == before.category
    assert session.purpose_mechanism == before.purpose_mechanism
    assert session.plans == before.plans
    assert session.flowchart_nodes == before.flowchart_nodes


def test_plan_generation_without_inputs_replies_instead_of_calling():
    gateway = CountingGateway()
    orchestrator = _orchestrator(gateway=gateway)
    orchestrator.handle_message(CONCEPT)
    gateway.calls.clear()

    generated = orchestrator._generate_plans(None, responses.PRESENT_PLANS)

    assert generated is False
    assert gateway.calls == []
    assert orchestrator.session.messages[-1].content == responses.PURPOSE_MISSING_RESULTS
    assert orchestrator.session.plans is None
