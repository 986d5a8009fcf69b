"""Canned backend responses served by the mock gateway."""

from __future__ import annotations

from typing import Dict, List

from ..core.schemas import (
    CommonStandards,
    DeviceClassification,
    PerformanceEvaluation,
    Plan,
    PlanTier,
    ProductCategory,
    PurposeMechanism,
    TimelineItem,
)

MOCK_CLASSIFICATION = DeviceClassification(
    is_medical_device=True,
    reasoning=(
        "The concept is used for a medical purpose and is software that assists the "
        "diagnosis or treatment of disease, so it qualifies as a medical device."
    ),
    confidence=0.92,
    category="Radiology diagnostic support software",
    risk_class="II",
)

MOCK_CATEGORIES: List[ProductCategory] = [
    ProductCategory(
        code="A41010.01",
        name="Radiology diagnostic support software",
        description="Software that analyses medical images to detect lesions or support clinicians' diagnosis",
        regulatory_path="Class II medical device - approval required",
    ),
    ProductCategory(
        code="A41010.02",
        name="Medical image processing software",
        description="Software that enhances and processes medical images",
        regulatory_path="Class I medical device - notification",
    ),
]

MOCK_PURPOSE_MECHANISM = PurposeMechanism(
    intended_use="Automatically detect pulmonary nodules on CT images to support clinicians' diagnosis",
    mechanism_of_action="A deep learning algorithm analyses CT images and marks suspected lesions",
    target_population="Adult patients who need pulmonary nodule screening",
    clinical_benefit="Earlier detection shortens time to treatment and improves survival",
    contraindications=["Paediatric patients under 18", "Images of insufficient quality"],
)

_DURATIONS: Dict[str, Dict[PlanTier, str]] = {
    "documents": {
        PlanTier.FASTEST: "2 weeks",
        PlanTier.NORMAL: "4 weeks",
        PlanTier.CONSERVATIVE: "6 weeks",
        PlanTier.INNOVATIVE: "3 weeks",
    },
    "quality": {
        PlanTier.FASTEST: "8 weeks",
        PlanTier.NORMAL: "12 weeks",
        PlanTier.CONSERVATIVE: "16 weeks",
        PlanTier.INNOVATIVE: "10 weeks",
    },
    "biocompatibility": {
        PlanTier.FASTEST: "4 weeks",
        PlanTier.NORMAL: "6 weeks",
        PlanTier.CONSERVATIVE: "8 weeks",
        PlanTier.INNOVATIVE: "5 weeks",
    },
    "algorithm": {
        PlanTier.FASTEST: "4 weeks",
        PlanTier.NORMAL: "8 weeks",
        PlanTier.CONSERVATIVE: "12 weeks",
        PlanTier.INNOVATIVE: "6 weeks",
    },
    "clinical": {
        PlanTier.FASTEST: "12 weeks",
        PlanTier.NORMAL: "16 weeks",
        PlanTier.CONSERVATIVE: "24 weeks",
        PlanTier.INNOVATIVE: "14 weeks",
    },
    "software": {
        PlanTier.FASTEST: "6 weeks",
        PlanTier.NORMAL: "8 weeks",
        PlanTier.CONSERVATIVE: "12 weeks",
        PlanTier.INNOVATIVE: "7 weeks",
    },
}


def _common_timeline(tier: PlanTier) -> List[TimelineItem]:
    timeline = [
        TimelineItem(
            phase="Document preparation",
            description="Prepare the technical file and clinical investigation plan",
            duration=_DURATIONS["documents"][tier],
            deliverables=["Technical file", "eCTD structure", "Clinical investigation plan"],
        ),
        TimelineItem(
            phase="Quality management system",
            description="Prepare for and obtain ISO 13485 certification",
            duration=_DURATIONS["quality"][tier],
            dependencies=["Document preparation"],
            deliverables=["ISO 13485 certificate", "QMS documentation"],
        ),
        TimelineItem(
            phase="Biological safety",
            description="ISO 10993 testing (where applicable)",
            duration=_DURATIONS["biocompatibility"][tier],
            dependencies=["Document preparation"],
            deliverables=["Biological safety test report"],
        ),
    ]
    if tier is PlanTier.INNOVATIVE:
        timeline.append(
            TimelineItem(
                phase="Innovative device designation",
                description="Apply for innovative medical device designation and priority review",
                duration="4 weeks",
                deliverables=["Innovative device designation", "Priority review approval"],
            )
        )
    return timeline


def _performance_timeline(tier: PlanTier) -> List[TimelineItem]:
    return [
        TimelineItem(
            phase="Algorithm validation",
            description="Validation testing of the algorithm for performance evaluation",
            duration=_DURATIONS["algorithm"][tier],
            deliverables=["Algorithm validation report", "Statistical analysis"],
        ),
        TimelineItem(
            phase="Clinical performance study",
            description="Performance evaluation in a real clinical setting",
            duration=_DURATIONS["clinical"][tier],
            dependencies=["Algorithm validation"],
            deliverables=["Clinical study report", "IRB approval"],
        ),
        TimelineItem(
            phase="Software verification",
            description="Software verification based on IEC 62304",
            duration=_DURATIONS["software"][tier],
            deliverables=["Software verification report", "V&V documentation"],
        ),
    ]


def build_mock_plans() -> List[Plan]:
    return [
        Plan(
            id="plan-fastest",
            tier=PlanTier.FASTEST,
            title="Fastest path",
            description="Meet the minimum requirements to obtain approval as quickly as possible",
            total_duration="6 months",
            estimated_cost="$75k - $110k",
            risk_level="high",
            common_standards=CommonStandards(
                timeline=_common_timeline(PlanTier.FASTEST),
                standards=["ISO 13485", "ISO 14971", "IEC 62304"],
                documentation=["Technical file", "Risk management file", "eCTD"],
            ),
            performance_evaluation=PerformanceEvaluation(
                timeline=_performance_timeline(PlanTier.FASTEST),
                tests=["Algorithm validation", "Clinical performance study (minimum cases)", "Software verification"],
                documentation=["Test plan", "Test report", "V&V documentation"],
            ),
            pros=["Fastest market entry", "Lowest upfront cost", "Early feedback"],
            cons=["High risk of rejection", "Likely requests for more data", "Lower market confidence"],
            recommendations=[
                "Suitable when the regulatory basis is clear",
                "Works well for early-stage startups",
                "When fast market validation is needed",
            ],
        ),
        Plan(
            id="plan-normal",
            tier=PlanTier.NORMAL,
            title="Standard path",
            description="A balanced regulatory strategy following industry practice",
            total_duration="9-10 months",
            estimated_cost="$110k - $190k",
            risk_level="medium",
            common_standards=CommonStandards(
                timeline=_common_timeline(PlanTier.NORMAL),
                standards=["ISO 13485", "ISO 14971", "IEC 62304", "IEC 82304-1"],
                documentation=["Technical file", "Risk management file", "eCTD", "Usability evaluation"],
            ),
            performance_evaluation=PerformanceEvaluation(
                timeline=_performance_timeline(PlanTier.NORMAL),
                tests=[
                    "Algorithm validation",
                    "Clinical performance study (adequate cases)",
                    "Software verification",
                    "Usability evaluation",
                ],
                documentation=["Test plan", "Test report", "V&V documentation", "Usability report"],
            ),
            pros=["High likelihood of approval", "Moderate investment", "Builds market confidence"],
            cons=["Medium timeline", "Standard cost"],
            recommendations=[
                "Recommended for most manufacturers",
                "When a predictable approval is preferred",
                "For mid to long term business plans",
            ],
        ),
        Plan(
            id="plan-conservative",
            tier=PlanTier.CONSERVATIVE,
            title="Conservative path",
            description="Collect as much evidence as possible to secure the review outcome",
            total_duration="12-15 months",
            estimated_cost="$190k - $300k",
            risk_level="low",
            common_standards=CommonStandards(
                timeline=_common_timeline(PlanTier.CONSERVATIVE),
                standards=["ISO 13485", "ISO 14971", "IEC 62304", "IEC 82304-1", "ISO 27001"],
                documentation=[
                    "Technical file",
                    "Risk management file",
                    "eCTD",
                    "Usability evaluation",
                    "Security evaluation",
                ],
            ),
            performance_evaluation=PerformanceEvaluation(
                timeline=_performance_timeline(PlanTier.CONSERVATIVE),
                tests=[
                    "Algorithm validation (multiple datasets)",
                    "Multi-centre clinical performance study",
                    "Software verification",
                    "Usability evaluation",
                    "Security evaluation",
                ],
                documentation=[
                    "Test plan",
                    "Test report",
                    "V&V documentation",
                    "Usability report",
                    "Security report",
                    "Multi-centre clinical data",
                ],
            ),
            pros=["Maximises approval probability", "High market confidence", "Ready for global submissions"],
            cons=["Long development time", "High cost", "Delayed market entry"],
            recommendations=[
                "Large companies or well-funded teams",
                "When global market entry is planned",
                "High-risk products",
            ],
        ),
        Plan(
            id="plan-innovative",
            tier=PlanTier.INNOVATIVE,
            title="Innovation path",
            description="Obtain innovative medical device designation for priority review and support",
            total_duration="7-8 months",
            estimated_cost="$135k - $210k",
            risk_level="medium",
            common_standards=CommonStandards(
                timeline=_common_timeline(PlanTier.INNOVATIVE),
                standards=["ISO 13485", "ISO 14971", "IEC 62304", "IEC 82304-1"],
                documentation=[
                    "Technical file",
                    "Risk management file",
                    "eCTD",
                    "Evidence of innovation",
                    "Innovative device application",
                ],
            ),
            performance_evaluation=PerformanceEvaluation(
                timeline=_performance_timeline(PlanTier.INNOVATIVE),
                tests=["Algorithm validation", "Clinical performance study", "Software verification", "Innovation assessment"],
                documentation=[
                    "Test plan",
                    "Test report",
                    "V&V documentation",
                    "Evidence of innovation",
                    "Technical excellence report",
                ],
            ),
            pros=["Priority review shortens the timeline", "Eligible for government funding", "High market visibility"],
            cons=["Innovation must be demonstrated", "Designation review adds time", "Falls back to the standard path if refused"],
            recommendations=[
                "When the technical innovation is clear",
                "World-first or country-first technology",
                "When linked to government support programmes",
            ],
        ),
    ]
