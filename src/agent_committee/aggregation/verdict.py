"""Judge prompt rendering and verdict parsing."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional

JUDGE_FALLBACK_RECOMMENDATIONS = ["Review the synthesis above", "Implement based on agent recommendations"]


def render_judge_prompt(outputs: Mapping[str, str], original_request: str) -> str:
    agent_list = "\n".join(f"=== {name} ===\n{text}\n" for name, text in outputs.items())
    return f"""You are an unbiased Committee Aggregator Agent. Your role is to evaluate all agent outputs and synthesize a comprehensive final result.

Original Request: {original_request}

Agent Outputs:
{agent_list}

Your Task:
1. Review ALL agent outputs above objectively
2. Evaluate the reasoning quality of each agent
3. Identify the best insights from each agent
4. Synthesize a comprehensive final result that combines the best ideas
5. Remain completely unbiased - evaluate based on merit only
6. Do NOT favor any specific agent

Provide your final judgment in this format:
{{
  "winner": "<agent_name>",
  "synthesis": "<comprehensive merged result>",
  "recommendations": ["<action item 1>", "<action item 2>", ...],
  "finalCode": "<final code implementation if applicable>"
}}

Be concise and focused. Prioritize actionable recommendations."""


def extract_json_block(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` block in ``text``.

    Braces inside JSON string literals are ignored so code in ``finalCode``
    does not end the block early.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # Unbalanced from here; try the next opening brace
        start = text.find("{", start + 1)
    return None


def parse_verdict(text: str) -> Optional[Dict[str, Any]]:
    block = extract_json_block(text or "")
    if block is None:
        return None
    try:
        data = json.loads(block)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def coerce_recommendations(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(item) for item in value if item is not None and str(item).strip()]
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def coerce_optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    return json.dumps(value)
