"""Rendering of committee results for the front ends."""

from __future__ import annotations

import json
from typing import Any, Dict

from .errors import CommitteeError
from .types import CommitteeResult

RULE = "=" * 80
THIN_RULE = "-" * 80


def result_as_dict(result: CommitteeResult) -> Dict[str, Any]:
    synthesis = result.synthesis
    return {
        "workflow": {
            "userRequest": result.request,
            "context": result.context or None,
            "agentPreset": result.preset,
            "provider": result.provider,
            "model": result.model,
            "aggregatorProvider": result.aggregator_provider,
            "aggregatorModel": result.aggregator_model,
            "fallbackMode": result.fallback_mode,
            "totalAgents": result.total_agents,
            "successfulAgents": result.successful_agents,
            "failedAgents": result.failed_agents,
            "durationMs": round(result.duration_ms, 1),
            "timestamp": result.timestamp,
        },
        "agents": [
            {
                "agent": task.name,
                "role": task.role,
                "description": task.description,
                "focus": task.focus,
                "success": res.success,
                "response": res.output,
                "errorKind": res.error_kind,
                "error": res.error,
                "timestamp": res.timestamp,
            }
            for task, res in zip(result.tasks, result.results)
        ],
        "finalSynthesis": synthesis.to_dict(),
        "summary": {"message": summary_message(result)},
    }


def summary_message(result: CommitteeResult) -> str:
    return (
        f"Successfully processed {result.successful_agents} of {result.total_agents} agents. "
        f"Final synthesis generated using {result.synthesis.method.value} method."
    )


def format_report(result: CommitteeResult, include_json: bool = True) -> str:
    """Plain-text committee report."""
    lines = ["", RULE, "AGENT COMMITTEE RESULTS", RULE, "", f"Original Request: {result.request}"]
    if result.context:
        lines.append(f"Context: {result.context}")
    lines += [f"Agent Preset: {result.preset}", f"Provider: {result.provider or 'none (fallback mode)'}", ""]

    total = result.total_agents
    lines += ["", RULE, f"AGENT RESPONSES ({total} agents)", RULE, ""]
    for index, (task, res) in enumerate(zip(result.tasks, result.results), start=1):
        lines += ["", THIN_RULE, f"AGENT {index}/{total}: {task.name} ({task.role})", THIN_RULE]
        if res.success:
            lines += ["Response:", "", res.output or ""]
        else:
            lines.append(f"Error [{res.error_kind}]: {res.error}")
        lines.append("")

    synthesis = result.synthesis
    lines += ["", RULE, "FINAL SYNTHESIS (Committee Aggregator)", RULE, ""]
    lines += [f"Method: {synthesis.method.value}", f"Winner: {synthesis.winner}", ""]
    lines += ["Synthesis:", synthesis.synthesis, ""]
    if synthesis.recommendations:
        lines.append("Recommendations:")
        lines += [f"{i}. {rec}" for i, rec in enumerate(synthesis.recommendations, start=1)]
        lines.append("")
    if synthesis.artifact:
        lines += ["Final Code:", "```", synthesis.artifact, "```", ""]

    lines += ["", RULE, "SUMMARY", RULE, summary_message(result)]
    if include_json:
        lines += ["", "", RULE, "STRUCTURED DATA (JSON)", RULE, "", "```json"]
        lines.append(json.dumps(result_as_dict(result), indent=2))
        lines.append("```")
    return "\n".join(lines) + "\n"


def format_error(error: Exception) -> str:
    if isinstance(error, CommitteeError):
        payload = error.to_dict()
        return f"Error: {error.message}\n\nCode: {payload['code']}\n{json.dumps(payload['data'], indent=2)}"
    return f"Error: {error or 'An unexpected error occurred'}\n\nPlease check the logs for more details."
