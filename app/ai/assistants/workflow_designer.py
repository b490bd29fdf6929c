"""
ReqBridge
Workflow Designer Assistant.

Asks the LLM for a node/edge workflow covering one or more requirements and
normalises the answer into the stored diagram format. Positions are not
trusted from the model; ``workflow_service.layout_nodes`` assigns them.
"""

import logging

from app.ai.gateway import extract_json
from app.core.exceptions import AIServiceError

logger = logging.getLogger(__name__)

NODE_TYPE_MAP = {
    "start event": "start",
    "end event": "end",
    "task": "task",
    "subprocess": "subprocess",
    "decision": "decision",
    "parallel gw": "parallel",
    "user task": "userTask",
    "wait / delay": "wait",
    "message event": "message",
    "error event": "error",
    "annotation": "annotation",
}


def map_node_type(label: str | None) -> str:
    return NODE_TYPE_MAP.get((label or "").strip().lower(), "task")


class WorkflowDesigner:
    """Generate a workflow diagram from requirements."""

    PURPOSE = "workflow_design"

    def __init__(self, gateway, prompt_registry, model: str | None = None):
        self.gateway = gateway
        self.prompt_registry = prompt_registry
        self.model = model

    def design(self, requirements: list, project) -> dict:
        """Return ``{"nodes": [...], "edges": [...]}`` (unpositioned)."""
        primary = requirements[0]
        if len(requirements) == 1:
            title = primary.title
            description = primary.description or ""
        else:
            title = "; ".join(r.title for r in requirements)
            description = "\n\n".join(
                f"{r.code_id} {r.title}: {r.description or ''}" for r in requirements
            )
        criteria = [
            c.get("description", "")
            for r in requirements for c in (r.acceptance_criteria or [])
            if isinstance(c, dict)
        ]

        template = self.prompt_registry.get(self.PURPOSE)
        messages = self.prompt_registry.render(
            self.PURPOSE,
            requirement_title=title,
            requirement_description=description,
            acceptance_criteria="\n".join(f"- {c}" for c in criteria) or "None provided.",
        )
        response = self.gateway.chat(
            messages,
            model=self.model,
            purpose=self.PURPOSE,
            project_id=project.id,
            **template.metadata,
        )
        try:
            raw = extract_json(response["content"], expect=dict)
        except ValueError as e:
            raise AIServiceError("Failed to generate workflow", detail=str(e))

        nodes, edges = raw.get("nodes"), raw.get("edges")
        if not isinstance(nodes, list) or not isinstance(edges, list) or not nodes:
            raise AIServiceError(
                "Failed to generate workflow",
                detail="AI response did not contain a valid nodes/edges structure",
            )
        for node in nodes:
            if not isinstance(node, dict) or not isinstance(node.get("data") or {}, dict):
                raise AIServiceError(
                    "Failed to generate workflow",
                    detail="AI response contained a malformed node",
                )
        return {
            "nodes": [self._normalise_node(n, i, primary.id) for i, n in enumerate(nodes)],
            "edges": [self._normalise_edge(e, i) for i, e in enumerate(edges) if isinstance(e, dict)],
        }

    @staticmethod
    def _normalise_node(node: dict, index: int, requirement_id: int) -> dict:
        data = node.get("data") or {}
        justification = data.get("justification") or node.get("justification") or ""
        return {
            "id": str(node.get("id") or f"node-{index + 1}"),
            "type": map_node_type(data.get("nodeType") or node.get("nodeType")),
            "position": {"x": 0, "y": 0},
            "data": {
                "label": data.get("label") or node.get("label") or f"Step {index + 1}",
                "description": justification or data.get("description") or "",
                "requirementId": requirement_id,
                "properties": {"justification": justification},
            },
        }

    @staticmethod
    def _normalise_edge(edge: dict, index: int) -> dict:
        edge_type = edge.get("type") or "default"
        return {
            "id": str(edge.get("id") or f"edge-{index + 1}"),
            "source": str(edge.get("source")),
            "target": str(edge.get("target")),
            "label": edge.get("label") or "",
            "type": "default" if edge_type == "smoothstep" else edge_type,
            "animated": False,
        }
