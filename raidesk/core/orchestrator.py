from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional, TypeVar

from ..gateway.base import Gateway
from ..gateway.cancellation import CancellationToken
from ..storage.base import SessionStorage
from . import responses
from .errors import GatewayError, PlanNotFoundError, SessionBusyError
from .flowchart import FlowchartBuilder
from .intent_router import Intent, classify_intent, mentions_regenerate, mentions_start_over
from .logging.audit import audit_event, safe_excerpt
from .schemas import (
    AppMode,
    ClassificationResult,
    ConversationStep,
    Message,
    MessageMetadata,
    Plan,
    PlanDiff,
    PlansResult,
    ProductCategory,
    PurposeMechanismResult,
    Session,
    new_session,
)

ResultT = TypeVar("ResultT")

StepHandler = Callable[[str, Intent, Optional[CancellationToken]], None]


class SessionOrchestrator:
    """Runs the conversation workflow for a single session.

    The orchestrator is the only writer of its ``Session``. Callers must not
    run two actions on the same orchestrator at once; ``is_loading`` is set
    while a remote call is in flight and new messages are rejected meanwhile.
    Every public action persists the session before returning a snapshot.
    """

    def __init__(
        self,
        gateway: Gateway,
        storage: SessionStorage,
        session: Session | None = None,
    ) -> None:
        self.gateway = gateway
        self.storage = storage
        self.session = session or new_session(mode=AppMode(gateway.mode))
        self._inflight: Optional[CancellationToken] = None
        self._inflight_lock = threading.Lock()
        self._handlers: Dict[ConversationStep, StepHandler] = {
            ConversationStep.CONCEPT_INPUT: self._on_concept_input,
            ConversationStep.DEVICE_CLASSIFICATION: self._on_device_classification,
            ConversationStep.PRODUCT_CATEGORY: self._on_product_category,
            ConversationStep.PURPOSE_MECHANISM: self._on_purpose_mechanism,
            ConversationStep.PLAN_GENERATION: self._on_plans,
            ConversationStep.PLAN_REVIEW: self._on_plans,
            ConversationStep.FINAL_CONFIRMATION: self._on_final_confirmation,
        }

    @property
    def flowchart(self) -> FlowchartBuilder:
        return FlowchartBuilder(self.session.flowchart_nodes, self.session.flowchart_edges)

    def snapshot(self) -> Session:
        return self.session.model_copy(deep=True)

    def start(self) -> Session:
        """Greet a fresh session and move it to concept input."""

        self._greet()
        self._persist()
        return self.snapshot()

    def handle_message(self, text: str, cancel: Optional[CancellationToken] = None) -> Session:
        self._ensure_idle()
        if self.session.current_step is ConversationStep.GREETING:
            self._greet()
        self._add_message("user", text)
        intent = classify_intent(text)
        step = self.session.current_step
        audit_event(
            "session_message",
            session_id=self.session.session_id,
            step=step.name,
            intent=intent.value,
            excerpt=safe_excerpt(text),
        )
        self._handlers[step](text, intent, cancel)
        self._persist()
        return self.snapshot()

    def select_plan(self, plan: Plan) -> Session:
        self._ensure_idle()
        session = self.session
        session.selected_plan = plan.model_copy(deep=True)
        self.flowchart.add_selected_plan(plan)
        self._reply(responses.plan_selected(plan.title))
        self._set_step(ConversationStep.FINAL_CONFIRMATION)
        self._persist()
        return self.snapshot()

    def refine_plan(
        self,
        plan_id: str,
        modifications: str,
        cancel: Optional[CancellationToken] = None,
    ) -> Session:
        self._ensure_idle()
        session = self.session
        original = session.find_plan(plan_id)
        if original is None:
            raise PlanNotFoundError(plan_id)
        context: Dict[str, Any] = {
            "classification": session.classification.to_wire() if session.classification else None,
            "category": session.category.to_wire() if session.category else None,
            "purposeMechanism": session.purpose_mechanism.to_wire() if session.purpose_mechanism else None,
        }
        refined = self._call_remote(
            "refine_plan",
            lambda token: self.gateway.refine_plan(plan_id, modifications, context, original, cancel=token),
            cancel,
        )
        if refined is not None:
            session.plans = [refined if plan.id == plan_id else plan for plan in session.plans or []]
            if session.selected_plan is not None and session.selected_plan.id == plan_id:
                session.selected_plan = refined.model_copy(deep=True)
            self.flowchart.add_refined_plan(refined)
            self._reply(
                responses.PLAN_REFINED,
                PlanDiff(modifications=modifications, original_plan=original, modified_plan=refined),
            )
        self._persist()
        return self.snapshot()

    def reset(self) -> Session:
        """Drop the persisted session and start a fresh one in the same mode."""

        previous = self.session
        self.storage.delete(previous.session_id)
        self.session = new_session(mode=previous.mode)
        audit_event(
            "session_reset",
            previous_session_id=previous.session_id,
            session_id=self.session.session_id,
        )
        return self.start()

    def cancel(self) -> bool:
        """Cancel the in-flight remote call, if there is one."""

        with self._inflight_lock:
            token = self._inflight
        if token is None:
            return False
        token.cancel()
        audit_event("session_cancel", session_id=self.session.session_id)
        return True

    def close(self) -> None:
        """Cancel any in-flight call and release the gateway."""

        self.cancel()
        self.gateway.close()

    def toggle_summary(self) -> Session:
        self.session.show_summary = not self.session.show_summary
        self.session.touch()
        self._persist()
        return self.snapshot()

    def toggle_flowchart(self) -> Session:
        self.session.show_flowchart = not self.session.show_flowchart
        self.session.touch()
        self._persist()
        return self.snapshot()

    def _on_concept_input(self, text: str, intent: Intent, cancel: Optional[CancellationToken]) -> None:
        # Any description counts as the concept, whatever keywords it contains.
        concept = text.strip()
        if not concept:
            self._reply(responses.CONCEPT_PROMPT)
            return
        result = self._call_remote(
            "classify_device",
            lambda token: self.gateway.classify_device(concept, cancel=token),
            cancel,
        )
        if result is None:
            return
        session = self.session
        session.concept = concept
        session.classification = result.classification
        session.suggested_categories = list(result.suggested_categories)
        self.flowchart.add_classification(result.classification)
        self._reply(
            responses.ACKNOWLEDGE_CLASSIFICATION,
            ClassificationResult(
                classification=result.classification,
                suggested_categories=result.suggested_categories,
            ),
        )
        self._set_step(ConversationStep.DEVICE_CLASSIFICATION)

    def _on_device_classification(self, text: str, intent: Intent, cancel: Optional[CancellationToken]) -> None:
        if intent is Intent.PROCEED:
            self._reply(responses.ACKNOWLEDGE_CATEGORY)
            self._set_step(ConversationStep.PRODUCT_CATEGORY)
        elif intent is Intent.MODIFY:
            self._reply(responses.CLASSIFICATION_REENTRY)
            self._set_step(ConversationStep.CONCEPT_INPUT)
        else:
            self._reply(responses.CLASSIFICATION_REPROMPT)

    def _on_product_category(self, text: str, intent: Intent, cancel: Optional[CancellationToken]) -> None:
        session = self.session
        if intent is Intent.MODIFY:
            self._reply(responses.CATEGORY_RESTART)
            self._set_step(ConversationStep.CONCEPT_INPUT)
            return
        if intent is not Intent.PROCEED or session.classification is None:
            self._reply(responses.CATEGORY_REPROMPT)
            return

        category = self._derive_category()
        category_name = category.name if category else (session.classification.category or "")
        concept = session.concept or ""
        purpose_mechanism = self._call_remote(
            "generate_purpose_mechanism",
            lambda token: self.gateway.generate_purpose_mechanism(concept, category_name, cancel=token),
            cancel,
        )
        if purpose_mechanism is None:
            return
        if category is not None:
            session.category = category
            self.flowchart.add_category(category)
        session.purpose_mechanism = purpose_mechanism
        self.flowchart.add_purpose_mechanism(purpose_mechanism)
        self._reply(
            responses.ACKNOWLEDGE_PURPOSE,
            PurposeMechanismResult(purpose_mechanism=purpose_mechanism),
        )
        self._set_step(ConversationStep.PURPOSE_MECHANISM)

    def _on_purpose_mechanism(self, text: str, intent: Intent, cancel: Optional[CancellationToken]) -> None:
        if intent is Intent.MODIFY:
            self._reply(responses.PURPOSE_RESTART)
            self._set_step(ConversationStep.CONCEPT_INPUT)
            return
        if intent is not Intent.PROCEED:
            self._reply(responses.PURPOSE_REPROMPT)
            return
        if not self._has_plan_inputs():
            self._reply(responses.PURPOSE_MISSING_RESULTS)
            return
        if self._generate_plans(cancel, responses.PRESENT_PLANS):
            self._set_step(ConversationStep.PLAN_GENERATION)

    def _on_plans(self, text: str, intent: Intent, cancel: Optional[CancellationToken]) -> None:
        if mentions_regenerate(text) and self._has_plan_inputs():
            self._generate_plans(cancel, responses.PLANS_REGENERATED)
            return
        if mentions_start_over(text):
            self._reply(responses.PLANS_RESTART)
            self._set_step(ConversationStep.CONCEPT_INPUT)
            return
        if intent is Intent.PROCEED:
            self._reply(responses.PLANS_SELECT_HINT)
        elif intent is Intent.MODIFY:
            self._reply(responses.PLANS_MODIFY_HINT)
        else:
            self._reply(responses.PLANS_HELP)

    def _on_final_confirmation(self, text: str, intent: Intent, cancel: Optional[CancellationToken]) -> None:
        self._reply(responses.WORKFLOW_COMPLETE)

    def _generate_plans(self, cancel: Optional[CancellationToken], reply: str) -> bool:
        session = self.session
        classification = session.classification
        category = session.category
        purpose_mechanism = session.purpose_mechanism
        if classification is None or category is None or purpose_mechanism is None:
            self._reply(responses.PURPOSE_MISSING_RESULTS)
            return False
        plans = self._call_remote(
            "generate_plans",
            lambda token: self.gateway.generate_plans(classification, category, purpose_mechanism, cancel=token),
            cancel,
        )
        if plans is None:
            return False
        session.plans = list(plans)
        self.flowchart.add_plans(session.plans)
        self._reply(reply, PlansResult(plan_ids=[plan.id for plan in session.plans]))
        return True

    def _has_plan_inputs(self) -> bool:
        session = self.session
        return (
            session.classification is not None
            and session.category is not None
            and session.purpose_mechanism is not None
        )

    def _derive_category(self) -> Optional[ProductCategory]:
        session = self.session
        name = session.classification.category if session.classification else None
        if name:
            for candidate in session.suggested_categories:
                if candidate.name == name:
                    return candidate.model_copy(deep=True)
        if session.suggested_categories:
            return session.suggested_categories[0].model_copy(deep=True)
        if name:
            return ProductCategory(code="", name=name)
        return None

    def _call_remote(
        self,
        operation: str,
        call: Callable[[CancellationToken], ResultT],
        cancel: Optional[CancellationToken],
    ) -> Optional[ResultT]:
        """Run one gateway call; on failure reply with an apology and return None."""

        token = cancel or CancellationToken()
        with self._inflight_lock:
            self._inflight = token
        self._set_loading(True)
        try:
            return call(token)
        except GatewayError as exc:
            audit_event(
                "session_remote_failed",
                session_id=self.session.session_id,
                operation=operation,
                error=exc.__class__.__name__,
                cancelled=getattr(exc, "cancelled", False),
            )
            self._reply(responses.APOLOGY)
            return None
        finally:
            self._set_loading(False)
            with self._inflight_lock:
                self._inflight = None

    def _greet(self) -> None:
        if self.session.current_step is not ConversationStep.GREETING:
            return
        if not self.session.messages:
            self._reply(responses.GREETING)
        self._set_step(ConversationStep.CONCEPT_INPUT)

    def _ensure_idle(self) -> None:
        if self.session.is_loading:
            raise SessionBusyError(f"Session {self.session.session_id} is waiting for the backend")

    def _reply(self, content: str, metadata: MessageMetadata | None = None) -> None:
        self._add_message("assistant", content, metadata)

    def _add_message(self, role: str, content: str, metadata: MessageMetadata | None = None) -> None:
        self.session.messages.append(Message(role=role, content=content, metadata=metadata))
        self.session.touch()

    def _set_step(self, step: ConversationStep) -> None:
        previous = self.session.current_step
        self.session.current_step = step
        self.session.touch()
        audit_event(
            "session_transition",
            session_id=self.session.session_id,
            from_step=previous.name,
            to_step=step.name,
        )

    def _set_loading(self, loading: bool) -> None:
        self.session.is_loading = loading
        self.session.touch()

    def _persist(self) -> None:
        self.storage.save(self.session)
