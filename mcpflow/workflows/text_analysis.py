"""
Text Analysis Workflow.

The sample workflow demonstrating the engine:
1. Trigger with {"text": "..."}
2. Compute text statistics (text-stats)
3. Score keyword sentiment (keyword-sentiment)
4. Branch on the sentiment score
5. Negative texts are stored for review, everything else is returned
"""

import logging

from mcpflow.engine.definition import WorkflowDefinition
from mcpflow.services.registry import get_service


logger = logging.getLogger(__name__)


DEMO_WORKFLOW_ID = "text-analysis-demo"


def _service_descriptor(slug: str) -> dict:
    service = get_service(slug)
    if service is not None:
        return service.descriptor()
    return {"id": slug, "slug": slug, "name": slug, "cost_per_call_cents": 0}


def create_text_analysis_workflow() -> WorkflowDefinition:
    """
    Create the text analysis workflow definition.

    Input payload requires:
    - text: str - The text to analyze

    Returns:
        WorkflowDefinition ready to be stored
    """
    return WorkflowDefinition.model_validate({
        "nodes": [
            {
                "id": "trigger",
                "type": "trigger",
                "data": {"label": "Text received", "triggerType": "manual"},
            },
            {
                "id": "stats",
                "type": "mcpServer",
                "data": {
                    "label": "Text statistics",
                    "mcpServer": _service_descriptor("text-stats"),
                    "inputs": [
                        {"id": "in-text", "name": "text", "source": "$input.text", "required": True},
                    ],
                },
            },
            {
                "id": "sentiment",
                "type": "mcpServer",
                "data": {
                    "label": "Keyword sentiment",
                    "mcpServer": _service_descriptor("keyword-sentiment"),
                    "inputs": [
                        {"id": "in-text", "name": "text", "source": "$input.text", "required": True},
                    ],
                    "config": {"extra_negative": ["outage", "delay"]},
                    "onError": "retry",
                    "maxRetries": 1,
                },
            },
            {
                "id": "check",
                "type": "condition",
                "data": {
                    "label": "Needs review?",
                    "condition": "$var.score < 0 || $stats.words > 200",
                    "trueLabel": "review",
                    "falseLabel": "ok",
                },
            },
            {
                "id": "flagged",
                "type": "output",
                "data": {"label": "Store for review", "outputType": "store", "config": {"collection": "review"}},
            },
            {
                "id": "result",
                "type": "output",
                "data": {"label": "Return analysis", "outputType": "return"},
            },
        ],
        "edges": [
            {"id": "e1", "source": "trigger", "target": "stats"},
            {"id": "e2", "source": "stats", "target": "sentiment"},
            {
                "id": "e3",
                "source": "sentiment",
                "target": "check",
                "data": {"mapping": {"score": "score", "label": "label"}},
            },
            {"id": "e4", "source": "check", "target": "flagged", "sourceHandle": "true"},
            {"id": "e5", "source": "check", "target": "result", "sourceHandle": "false"},
        ],
        "settings": {"maxCostCents": 50, "timeout": 60000, "logLevel": "info"},
    })


async def register_text_analysis_workflow():
    """
    Register the pre-built text analysis workflow in storage.

    This makes the workflow available immediately via the API
    without needing to create it first.
    """
    from mcpflow.storage.memory import workflow_storage

    definition = create_text_analysis_workflow()

    stored = await workflow_storage.save(
        name="Text Analysis Demo",
        definition=definition,
        workflow_id=DEMO_WORKFLOW_ID,
        slug=DEMO_WORKFLOW_ID,
    )

    logger.info(f"Registered Text Analysis workflow with ID: {DEMO_WORKFLOW_ID}")
    return stored
