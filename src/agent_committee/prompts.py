"""Deterministic prompt rendering for committee members."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from .types import TaskDefinition

RULE = "=" * 80

RESPONSE_TIME_GUIDELINES = (
    "IMPORTANT: Generate your response within 30-40 seconds.",
    "- Be concise and focused - prioritize quality over length",
    "- Provide essential insights and recommendations first",
    "- Use bullet points and clear structure for quick reading",
    "- Include code examples only if directly relevant and brief",
    "- Avoid lengthy explanations - get to the point quickly",
    "- Aim for 200-400 words maximum unless the task requires extensive detail",
    "- Focus on actionable recommendations rather than background theory",
)


@dataclass(frozen=True)
class PromptStyle:
    header_prefix: str
    guidelines_title: str
    output_intro: str
    output_items: Tuple[str, ...]
    considerations_title: str = ""
    considerations: Tuple[str, ...] = ()
    context_reminder: bool = False


SPECIALIZED = PromptStyle(
    header_prefix="AGENT",
    guidelines_title="Guidelines for {name}:",
    output_intro="As {role}, analyze the task and provide:",
    output_items=(
        "Your analysis and recommendations",
        "Code examples if applicable",
        "Best practices specific to your role",
        "Any concerns or considerations",
    ),
    context_reminder=True,
)

FRONTEND = PromptStyle(
    header_prefix="FRONTEND AGENT",
    guidelines_title="FRONTEND DEVELOPMENT GUIDELINES:",
    output_intro="As a {role}, analyze the task from a frontend perspective and provide:",
    output_items=(
        "Frontend-specific analysis and recommendations",
        "UI/UX considerations and design suggestions",
        "Component structure and implementation approach",
        "Frontend code examples if applicable",
        "Performance and accessibility considerations",
    ),
    considerations_title="FRONTEND-SPECIFIC CONSIDERATIONS",
    considerations=(
        "Focus on user experience and interface design",
        "Consider accessibility (a11y) requirements",
        "Optimize for performance and loading times",
        "Ensure responsive design for all screen sizes",
        "Use modern frontend frameworks and best practices",
        "Consider browser compatibility",
    ),
)

BACKEND = PromptStyle(
    header_prefix="BACKEND AGENT",
    guidelines_title="BACKEND DEVELOPMENT GUIDELINES:",
    output_intro="As a {role}, analyze the task from a backend perspective and provide:",
    output_items=(
        "Backend-specific analysis and recommendations",
        "API design and endpoint structure",
        "Database schema and data modeling considerations",
        "Backend code examples if applicable",
        "Security and performance considerations",
    ),
    considerations_title="BACKEND-SPECIFIC CONSIDERATIONS",
    considerations=(
        "Focus on API design and server-side logic",
        "Consider database design and query optimization",
        "Ensure security and data protection",
        "Plan for scalability and performance",
        "Implement proper error handling and logging",
        "Consider microservices architecture if applicable",
    ),
)

FULLSTACK = PromptStyle(
    header_prefix="FULLSTACK AGENT",
    guidelines_title="FULLSTACK DEVELOPMENT GUIDELINES:",
    output_intro="As a {role}, analyze the task from a fullstack perspective and provide:",
    output_items=(
        "Complete analysis covering both frontend and backend",
        "Integration points and API design",
        "End-to-end implementation approach",
        "Code examples for both layers if applicable",
        "Considerations for the complete system",
    ),
    considerations_title="FULLSTACK-SPECIFIC CONSIDERATIONS",
    considerations=(
        "Consider both frontend and backend aspects",
        "Plan for seamless integration between layers",
        "Design API contracts and data flow",
        "Ensure consistency across the stack",
        "Consider end-to-end user experience",
        "Plan for deployment and DevOps",
    ),
)

STYLES: Dict[str, PromptStyle] = {
    "specialized": SPECIALIZED,
    "frontend": FRONTEND,
    "backend": BACKEND,
    "fullstack": FULLSTACK,
}


def render_prompt(style: PromptStyle, task: TaskDefinition, request: str, context: str = "") -> str:
    lines: List[str] = [
        "",
        RULE,
        f"{style.header_prefix}: {task.name} ({task.role})",
        RULE,
        "",
        f"Role: {task.role}",
        f"Description: {task.description}",
        f"Focus Areas: {task.focus}",
        "",
        f"Task: {request}",
        "",
    ]
    if context:
        lines += ["--- CONTEXT FROM OTHER CHAT WINDOWS ---", context, "--- END CONTEXT ---", ""]
        if style.context_reminder:
            lines += [
                "IMPORTANT: Consider the above context when providing your analysis.",
                "Incorporate relevant information from other conversations.",
                "",
            ]

    lines += [style.guidelines_title.format(name=task.name, role=task.role), ""]
    lines += [f"{idx}. {guideline}" for idx, guideline in enumerate(task.guidelines, start=1)]
    lines += ["", ""]

    if style.considerations:
        lines.append(f"--- {style.considerations_title} ---")
        lines += [f"- {item}" for item in style.considerations]
        lines.append("")

    lines.append("--- AGENT OUTPUT REQUEST ---")
    lines.append(style.output_intro.format(name=task.name, role=task.role))
    lines += [f"{idx}. {item}" for idx, item in enumerate(style.output_items, start=1)]
    lines += ["", f"Approach: {task.approach or task.guidance}", "", "", "--- RESPONSE TIME GUIDELINES ---"]
    lines += list(RESPONSE_TIME_GUIDELINES)
    return "\n".join(lines) + "\n"


PromptRenderer = Callable[[TaskDefinition, str, str], str]


def get_renderer(preset: str) -> PromptRenderer:
    """Renderer for ``preset``; unknown presets use the specialized layout."""
    style = STYLES.get(preset, SPECIALIZED)

    def renderer(task: TaskDefinition, request: str, context: str = "") -> str:
        return render_prompt(style, task, request, context)

    return renderer


def render_prompts(preset: str, tasks: List[TaskDefinition], request: str, context: str = "") -> List[str]:
    renderer = get_renderer(preset)
    return [renderer(task, request, context) for task in tasks]
