from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Current UTC time truncated to millisecond precision."""

    now = datetime.now(tz=timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ConversationStep(IntEnum):
    GREETING = 0
    CONCEPT_INPUT = 1
    DEVICE_CLASSIFICATION = 2
    PRODUCT_CATEGORY = 3
    PURPOSE_MECHANISM = 4
    PLAN_GENERATION = 5
    PLAN_REVIEW = 6
    FINAL_CONFIRMATION = 7

    @property
    def label(self) -> str:
        return {
            ConversationStep.GREETING: "Start",
            ConversationStep.CONCEPT_INPUT: "Concept",
            ConversationStep.DEVICE_CLASSIFICATION: "Classification",
            ConversationStep.PRODUCT_CATEGORY: "Category",
            ConversationStep.PURPOSE_MECHANISM: "Purpose/Mechanism",
            ConversationStep.PLAN_GENERATION: "Plan generation",
            ConversationStep.PLAN_REVIEW: "Review",
            ConversationStep.FINAL_CONFIRMATION: "Done",
        }[self]


class AppMode(str, Enum):
    PRODUCTION = "production"
    MOCK = "mock"


class PlanTier(str, Enum):
    FASTEST = "fastest"
    NORMAL = "normal"
    CONSERVATIVE = "conservative"
    INNOVATIVE = "innovative"


class DeviceClassification(WireModel):
    is_medical_device: bool
    reasoning: str
    confidence: float = Field(ge=0.0, le=1.0)
    category: Optional[str] = None
    risk_class: Optional[Literal["I", "II", "III", "IV"]] = None


class ProductCategory(WireModel):
    code: str
    name: str
    description: str = ""
    regulatory_path: str = ""


class PurposeMechanism(WireModel):
    intended_use: str
    mechanism_of_action: str
    target_population: str
    clinical_benefit: str
    contraindications: List[str] = Field(default_factory=list)


class TimelineItem(WireModel):
    phase: str
    description: str
    duration: str
    dependencies: List[str] = Field(default_factory=list)
    deliverables: List[str] = Field(default_factory=list)


class CommonStandards(WireModel):
    timeline: List[TimelineItem] = Field(default_factory=list)
    standards: List[str] = Field(default_factory=list)
    documentation: List[str] = Field(default_factory=list)


class PerformanceEvaluation(WireModel):
    timeline: List[TimelineItem] = Field(default_factory=list)
    tests: List[str] = Field(default_factory=list)
    documentation: List[str] = Field(default_factory=list)


class Plan(WireModel):
    id: str
    tier: PlanTier
    title: str
    description: str
    total_duration: str
    estimated_cost: Optional[str] = None
    risk_level: Literal["low", "medium", "high"]
    common_standards: CommonStandards = Field(default_factory=CommonStandards)
    performance_evaluation: PerformanceEvaluation = Field(default_factory=PerformanceEvaluation)
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class ClassifyDeviceResponse(WireModel):
    classification: DeviceClassification
    suggested_categories: List[ProductCategory] = Field(default_factory=list)


class GeneratePlansResponse(WireModel):
    plans: List[Plan]


class RefinePlanResponse(WireModel):
    plan: Plan


class ClassificationResult(WireModel):
    kind: Literal["classification"] = "classification"
    classification: DeviceClassification
    suggested_categories: List[ProductCategory] = Field(default_factory=list)


class CategoryResult(WireModel):
    kind: Literal["category"] = "category"
    category: ProductCategory


class PurposeMechanismResult(WireModel):
    kind: Literal["purpose_mechanism"] = "purpose_mechanism"
    purpose_mechanism: PurposeMechanism


class PlansResult(WireModel):
    kind: Literal["plans"] = "plans"
    plan_ids: List[str] = Field(default_factory=list)


class PlanDiff(WireModel):
    kind: Literal["plan_diff"] = "plan_diff"
    modifications: str
    original_plan: Plan
    modified_plan: Plan


MessageMetadata = Annotated[
    Union[ClassificationResult, CategoryResult, PurposeMechanismResult, PlansResult, PlanDiff],
    Field(discriminator="kind"),
]


class Message(WireModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    metadata: Optional[MessageMetadata] = None


class FlowchartNode(WireModel):
    id: str
    label: str
    type: Literal["start", "end", "decision", "process"]
    step: ConversationStep
    data: Optional[Dict[str, Any]] = None


class FlowchartEdge(WireModel):
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    label: Optional[str] = None


class Session(WireModel):
    session_id: str = Field(default_factory=lambda: str(uuid4()))
    current_step: ConversationStep = ConversationStep.GREETING
    mode: AppMode = AppMode.PRODUCTION
    messages: List[Message] = Field(default_factory=list)

    concept: Optional[str] = None
    classification: Optional[DeviceClassification] = None
    suggested_categories: List[ProductCategory] = Field(default_factory=list)
    category: Optional[ProductCategory] = None
    purpose_mechanism: Optional[PurposeMechanism] = None
    plans: Optional[List[Plan]] = None
    selected_plan: Optional[Plan] = None

    flowchart_nodes: List[FlowchartNode] = Field(default_factory=list)
    flowchart_edges: List[FlowchartEdge] = Field(default_factory=list)

    show_summary: bool = False
    show_flowchart: bool = False
    is_loading: bool = False

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def touch(self) -> None:
        self.updated_at = utc_now()

    def find_plan(self, plan_id: str) -> Optional[Plan]:
        for plan in self.plans or []:
            if plan.id == plan_id:
                return plan
        return None


def new_session(mode: AppMode = AppMode.PRODUCTION) -> Session:
    created = utc_now()
    return Session(mode=mode, created_at=created, updated_at=created)
