from __future__ import annotations

from typing import List

from .schemas import (
    ConversationStep,
    DeviceClassification,
    FlowchartEdge,
    FlowchartNode,
    Plan,
    ProductCategory,
    PurposeMechanism,
)


class FlowchartBuilder:
    """Append-only graph mirroring the milestones of one session.

    Every appended node is linked to the previous last node, so the milestone
    helpers always produce a simple path. ``add_edge`` is available for callers
    that need extra edges.
    """

    def __init__(self, nodes: List[FlowchartNode], edges: List[FlowchartEdge]) -> None:
        self.nodes = nodes
        self.edges = edges

    def add_node(self, node: FlowchartNode) -> FlowchartNode:
        if self.nodes:
            previous = self.nodes[-1]
            self.edges.append(FlowchartEdge(source=previous.id, target=node.id))
        self.nodes.append(node)
        return node

    def add_edge(self, edge: FlowchartEdge) -> FlowchartEdge:
        self.edges.append(edge)
        return edge

    def next_node_id(self, kind: str) -> str:
        return f"node-{len(self.nodes) + 1}-{kind}"

    def add_classification(self, classification: DeviceClassification) -> FlowchartNode:
        answer = "Yes" if classification.is_medical_device else "No"
        return self.add_node(
            FlowchartNode(
                id=self.next_node_id("classification"),
                label=f"Medical device: {answer}",
                type="decision",
                step=ConversationStep.DEVICE_CLASSIFICATION,
                data=classification.to_wire(),
            )
        )

    def add_category(self, category: ProductCategory) -> FlowchartNode:
        return self.add_node(
            FlowchartNode(
                id=self.next_node_id("category"),
                label=category.name,
                type="process",
                step=ConversationStep.PRODUCT_CATEGORY,
                data=category.to_wire(),
            )
        )

    def add_purpose_mechanism(self, purpose_mechanism: PurposeMechanism) -> FlowchartNode:
        return self.add_node(
            FlowchartNode(
                id=self.next_node_id("purpose"),
                label="Intended use & mechanism",
                type="process",
                step=ConversationStep.PURPOSE_MECHANISM,
                data=purpose_mechanism.to_wire(),
            )
        )

    def add_plans(self, plans: List[Plan]) -> FlowchartNode:
        return self.add_node(
            FlowchartNode(
                id=self.next_node_id("plans"),
                label=f"{len(plans)} strategies generated",
                type="process",
                step=ConversationStep.PLAN_GENERATION,
                data={"count": len(plans)},
            )
        )

    def add_refined_plan(self, plan: Plan) -> FlowchartNode:
        return self.add_node(
            FlowchartNode(
                id=self.next_node_id("refined"),
                label=f"Refined: {plan.title}",
                type="process",
                step=ConversationStep.PLAN_REVIEW,
                data={"planId": plan.id},
            )
        )

    def add_selected_plan(self, plan: Plan) -> FlowchartNode:
        return self.add_node(
            FlowchartNode(
                id=self.next_node_id("selected"),
                label=f"Selected: {plan.title}",
                type="decision",
                step=ConversationStep.FINAL_CONFIRMATION,
                data={"planId": plan.id, "tier": plan.tier.value},
            )
        )
