from __future__ import annotations

GREETING = (
    "Hello! I'm the RAiDesk medical device regulatory assistant.\n\n"
    "I will guide your medical device idea all the way to approval. We'll go through these steps:\n"
    "1. Confirm the product concept\n"
    "2. Decide whether it is a medical device\n"
    "3. Classify the product category and risk class\n"
    "4. Define the intended use and mechanism of action\n"
    "5. Build a regulatory strategy (4 options)\n\n"
    "What medical device are you developing? Please describe it briefly."
)

CONCEPT_PROMPT = "Please describe the medical device concept you are developing."

ACKNOWLEDGE_CLASSIFICATION = (
    "Here is the analysis based on your description.\n\n"
    "Please review the medical device determination and category. "
    "Say \"confirm\" to continue or \"modify\" to describe the concept again."
)

CLASSIFICATION_REENTRY = (
    "Please enter the medical device concept again. "
    "A more detailed description makes a more accurate classification possible."
)

CLASSIFICATION_REPROMPT = (
    "Please review the classification result.\n\n"
    "If it is correct: \"confirm\" or \"proceed\"\n"
    "To redo it: \"modify\" or \"again\""
)

ACKNOWLEDGE_CATEGORY = (
    "The product category is settled.\n\n"
    "Next we'll define the intended use and mechanism of action. "
    "Say \"proceed\" to generate a proposal."
)

CATEGORY_RESTART = "Going back to classification. Please enter the medical device concept again."

CATEGORY_REPROMPT = (
    "Please confirm the product category.\n\n"
    "If it is correct: \"confirm\" or \"proceed\"\n"
    "To redo it: \"modify\" or \"again\""
)

ACKNOWLEDGE_PURPOSE = (
    "The intended use and mechanism of action are defined.\n\n"
    "Next we'll build the regulatory strategy: fastest, standard, conservative and innovative "
    "options. Say \"proceed\" to generate them."
)

PURPOSE_RESTART = "Let's start again from the concept. Please enter the medical device concept from the beginning."

PURPOSE_REPROMPT = (
    "Please review the intended use and mechanism of action.\n\n"
    "If it is correct: \"confirm\" or \"proceed\" (generate regulatory strategies)\n"
    "To redo it: \"modify\" or \"again\" (start from the concept)"
)

PURPOSE_MISSING_RESULTS = (
    "Some earlier results are missing, so strategies cannot be generated yet. "
    "Say \"modify\" to start again from the concept."
)

PRESENT_PLANS = (
    "I've prepared 4 regulatory strategies.\n\n"
    "Open each card to see the details. You can also request changes to a plan."
)

PLANS_SELECT_HINT = "Open a plan card on the right to see its details, then select the plan you like."

PLANS_MODIFY_HINT = (
    "Would you like new plans?\n\n"
    "Type \"regenerate\" to generate a new set of plans.\n"
    "Type \"start over\" to begin again from the concept."
)

PLANS_REGENERATED = "New strategies have been generated. Please review them on the right."

PLANS_RESTART = "Starting over. Please enter the medical device concept."

PLANS_HELP = (
    "Open a plan card to see its details.\n\n"
    "Regenerate plans: \"regenerate\"\n"
    "Start over: \"start over\"\n\n"
    "Or select a plan and request changes to it."
)

PLAN_REFINED = "I've updated the plan. Please review the changes."

WORKFLOW_COMPLETE = "This session is complete. Reset the session to evaluate another device."

APOLOGY = "Sorry, something went wrong. Please try again."


def plan_selected(title: str) -> str:
    return f"You selected the {title} plan. Shall we proceed with this plan?"
