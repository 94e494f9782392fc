"""Task catalog: named presets, each an ordered list of committee members.

Built-in presets can be replaced wholesale by a JSON file pointed to by
``COMMITTEE_PRESETS_FILE`` with the shape ``{"presets": {key: {name,
description, agents: [...]}}}``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import config
from .errors import ConfigurationError, ValidationError
from .types import TaskDefinition

logger = logging.getLogger(__name__)

REQUIRED_AGENT_FIELDS = ("name", "role", "description", "focus", "guidelines", "approach")


def _agent(name: str, role: str, description: str, focus: str, approach: str, guidelines: List[str]) -> Dict[str, Any]:
    return {
        "name": name,
        "role": role,
        "description": description,
        "focus": focus,
        "approach": approach,
        "guidelines": guidelines,
    }


BUILTIN_PRESETS: Dict[str, Dict[str, Any]] = {
    "specialized": {
        "name": "Specialized Committee",
        "description": "Seven specialists covering architecture, planning, code, review, refactoring, security and performance",
        "agents": [
            _agent(
                "ArchitectAgent",
                "System Architect",
                "Designs system architecture, defines components, and establishes technical foundations",
                "Architecture, design patterns, system structure, scalability",
                "Start from the system boundaries and work inward to components and their contracts",
                [
                    "Design with separation of concerns in mind",
                    "Use appropriate design patterns (Repository, Service Layer, Factory, Strategy)",
                    "Ensure components are loosely coupled and highly cohesive",
                    "Plan for scalability and maintainability",
                    "Document architectural decisions",
                ],
            ),
            _agent(
                "PlannerAgent",
                "Project Planner",
                "Creates implementation plans, breaks down tasks, and defines execution strategy",
                "Planning, task breakdown, execution strategy, milestones",
                "Break the request into ordered, independently verifiable steps",
                [
                    "Identify dependencies between tasks before ordering them",
                    "Define clear milestones with acceptance criteria",
                    "Call out risks and unknowns early",
                    "Keep each step small enough to review in isolation",
                ],
            ),
            _agent(
                "CoderAgent",
                "Code Generator",
                "Writes code implementations, follows best practices, and ensures functionality",
                "Code implementation, best practices, functionality, clean code",
                "Produce working, minimal code first and then refine it",
                [
                    "Follow consistent naming conventions",
                    "Keep functions small and focused (single responsibility)",
                    "Avoid deep nesting",
                    "Handle edge cases and validate inputs",
                    "Remove dead code and unused imports",
                ],
            ),
            _agent(
                "ReviewerAgent",
                "Code Reviewer",
                "Reviews code for quality, correctness, and adherence to standards",
                "Code quality, correctness, standards, review feedback",
                "Review as a maintainer would: correctness first, then clarity, then style",
                [
                    "Check correctness against the stated requirements",
                    "Look for missing error handling and edge cases",
                    "Verify that tests cover the important paths",
                    "Give concrete, actionable feedback",
                ],
            ),
            _agent(
                "RefactorAgent",
                "Code Refactorer",
                "Improves code structure, readability, and maintainability without changing functionality",
                "Refactoring, code structure, readability, maintainability",
                "Make small, behaviour-preserving changes backed by tests",
                [
                    "Refactor incrementally with small, safe changes",
                    "Maintain existing functionality while improving code",
                    "Extract functions to reduce complexity",
                    "Remove code duplication",
                    "Prefer composition over inheritance",
                ],
            ),
            _agent(
                "SecurityAgent",
                "Security Specialist",
                "Identifies security vulnerabilities, suggests security best practices, and ensures secure implementations",
                "Security, vulnerabilities, best practices, secure coding",
                "Threat-model the request and address the highest-risk issues first",
                [
                    "Validate and sanitize all user inputs",
                    "Use parameterized queries to prevent SQL injection",
                    "Implement proper authentication and authorization",
                    "Use environment variables for secrets (never commit them)",
                    "Implement rate limiting and CSRF protection",
                ],
            ),
            _agent(
                "PerformanceAgent",
                "Performance Optimizer",
                "Analyzes performance bottlenecks, suggests optimizations, and ensures efficient code",
                "Performance, optimization, efficiency, bottlenecks",
                "Measure first, then optimize the hot paths",
                [
                    "Optimize database queries (use indexes, avoid N+1 queries)",
                    "Implement proper caching strategies",
                    "Use memoization for expensive computations",
                    "Profile and measure before optimizing",
                ],
            ),
        ],
    },
    "frontend": {
        "name": "Frontend Committee",
        "description": "UI, UX, accessibility and client-side performance specialists",
        "agents": [
            _agent(
                "UIDesignerAgent",
                "UI Designer",
                "Designs component layouts and visual hierarchy",
                "Layout, visual design, component structure",
                "Sketch the component tree before styling details",
                [
                    "Keep components small and composable",
                    "Use a consistent design system",
                    "Ensure responsive design for all screen sizes",
                ],
            ),
            _agent(
                "UXAgent",
                "UX Specialist",
                "Evaluates user flows and interaction design",
                "User flows, usability, interaction design",
                "Walk through the main user journeys step by step",
                [
                    "Minimize steps in common flows",
                    "Provide clear feedback for every user action",
                    "Design helpful empty and error states",
                ],
            ),
            _agent(
                "AccessibilityAgent",
                "Accessibility Specialist",
                "Ensures interfaces are usable by everyone",
                "Accessibility, semantic markup, assistive technology",
                "Audit against WCAG criteria",
                [
                    "Use semantic HTML elements",
                    "Ensure keyboard navigation works everywhere",
                    "Provide sufficient color contrast and text alternatives",
                ],
            ),
            _agent(
                "FrontendPerformanceAgent",
                "Frontend Performance Engineer",
                "Optimizes load time and runtime performance in the browser",
                "Bundle size, rendering performance, loading strategy",
                "Measure with real metrics before changing code",
                [
                    "Use lazy loading and code splitting",
                    "Minimize bundle size",
                    "Optimize images and assets",
                ],
            ),
        ],
    },
    "backend": {
        "name": "Backend Committee",
        "description": "API, data, security and infrastructure specialists",
        "agents": [
            _agent(
                "APIDesignerAgent",
                "API Designer",
                "Designs endpoints, contracts and versioning",
                "API design, contracts, versioning",
                "Define resources and contracts before handlers",
                [
                    "Use consistent resource naming",
                    "Version the API from the start",
                    "Return structured, documented errors",
                ],
            ),
            _agent(
                "DatabaseAgent",
                "Database Engineer",
                "Designs schemas and queries",
                "Data modeling, indexing, query optimization",
                "Model the data around the access patterns",
                [
                    "Normalize where it protects integrity",
                    "Add indexes for frequent queries",
                    "Plan migrations that can be rolled back",
                ],
            ),
            _agent(
                "BackendSecurityAgent",
                "Backend Security Engineer",
                "Secures services and data",
                "Authentication, authorization, data protection",
                "Assume every input is hostile",
                [
                    "Validate and sanitize all inputs",
                    "Enforce least privilege",
                    "Encrypt sensitive data at rest and in transit",
                ],
            ),
            _agent(
                "InfrastructureAgent",
                "Infrastructure Engineer",
                "Plans deployment, scaling and observability",
                "Deployment, scalability, logging, monitoring",
                "Design for failure and recovery",
                [
                    "Implement proper error handling and logging",
                    "Plan for horizontal scaling",
                    "Automate deployments",
                ],
            ),
        ],
    },
    "fullstack": {
        "name": "Fullstack Committee",
        "description": "End-to-end specialists covering both layers and their integration",
        "agents": [
            _agent(
                "FullstackArchitectAgent",
                "Fullstack Architect",
                "Designs the end-to-end system across client and server",
                "System design, data flow, layer boundaries",
                "Trace one feature from UI to storage and back",
                [
                    "Define API contracts shared by both layers",
                    "Keep business logic on the server",
                    "Ensure consistency across the stack",
                ],
            ),
            _agent(
                "FrontendEngineerAgent",
                "Frontend Engineer",
                "Implements the client side",
                "Components, state management, user experience",
                "Build from the data contract outward",
                [
                    "Keep state close to where it is used",
                    "Handle loading and error states explicitly",
                    "Consider accessibility from the start",
                ],
            ),
            _agent(
                "BackendEngineerAgent",
                "Backend Engineer",
                "Implements the server side",
                "Services, persistence, integrations",
                "Start from the data model and the API contract",
                [
                    "Validate inputs at the boundary",
                    "Keep handlers thin and services testable",
                    "Log with enough context to debug",
                ],
            ),
            _agent(
                "DevOpsAgent",
                "DevOps Engineer",
                "Plans build, deployment and operations",
                "CI/CD, deployment, monitoring",
                "Automate everything that runs more than twice",
                [
                    "Use reproducible builds",
                    "Deploy with zero downtime",
                    "Monitor the end-to-end user experience",
                ],
            ),
        ],
    },
}


def validate_presets(data: Any, source: str = "presets") -> Dict[str, Dict[str, Any]]:
    """Check preset structure; raises ConfigurationError naming the first problem."""
    if not isinstance(data, dict) or not isinstance(data.get("presets"), dict):
        raise ConfigurationError(f"{source}: configuration must have a \"presets\" object")
    presets = data["presets"]
    for key, preset in presets.items():
        if not isinstance(preset, dict) or not all(preset.get(f) for f in ("name", "description", "agents")):
            raise ConfigurationError(
                f"{source}: preset \"{key}\" must have \"name\", \"description\", and \"agents\" properties"
            )
        agents = preset["agents"]
        if not isinstance(agents, list) or not agents:
            raise ConfigurationError(f"{source}: preset \"{key}\" must have a non-empty \"agents\" array")
        for index, agent in enumerate(agents):
            if not isinstance(agent, dict):
                raise ConfigurationError(f"{source}: preset \"{key}\", agent {index} must be an object")
            for field in REQUIRED_AGENT_FIELDS:
                if not agent.get(field):
                    raise ConfigurationError(
                        f"{source}: preset \"{key}\", agent {index} ({agent.get('name') or 'unnamed'}) "
                        f"is missing required field: \"{field}\""
                    )
            if not isinstance(agent["guidelines"], list):
                raise ConfigurationError(
                    f"{source}: preset \"{key}\", agent {index} ({agent['name']}) must have \"guidelines\" as an array"
                )
    return presets


def load_presets_file(path: str) -> Dict[str, Dict[str, Any]]:
    file_path = Path(path)
    try:
        raw = file_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Preset file not found: {path}") from exc
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid JSON in preset file {path}: {exc}") from exc
    return validate_presets(data, source=str(file_path))


class PresetCatalog:
    def __init__(self, presets: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self._presets = presets if presets is not None else BUILTIN_PRESETS

    @classmethod
    def from_config(cls) -> "PresetCatalog":
        if config.PRESETS_FILE:
            logger.info("loading presets from %s", config.PRESETS_FILE)
            return cls(load_presets_file(config.PRESETS_FILE))
        return cls()

    def available_presets(self) -> List[str]:
        return list(self._presets.keys())

    def _get(self, preset: str) -> Dict[str, Any]:
        if preset not in self._presets:
            available = ", ".join(self._presets)
            raise ValidationError(f"Preset \"{preset}\" not found. Available presets: {available}", field="preset")
        return self._presets[preset]

    def get_tasks(self, preset: str) -> List[TaskDefinition]:
        tasks = []
        for agent in self._get(preset)["agents"]:
            tasks.append(
                TaskDefinition(
                    name=agent["name"],
                    role=agent["role"],
                    guidance=agent.get("approach", ""),
                    description=agent.get("description", ""),
                    focus=agent.get("focus", ""),
                    approach=agent.get("approach", ""),
                    guidelines=tuple(agent.get("guidelines", [])),
                )
            )
        return tasks

    def preset_info(self, preset: str) -> Dict[str, Any]:
        data = self._get(preset)
        return {
            "key": preset,
            "name": data["name"],
            "description": data["description"],
            "agentCount": len(data["agents"]),
            "agents": [
                {"name": a["name"], "role": a["role"], "description": a["description"], "focus": a["focus"]}
                for a in data["agents"]
            ],
        }


_CATALOG: Optional[PresetCatalog] = None


def get_catalog() -> PresetCatalog:
    global _CATALOG
    if _CATALOG is None:
        _CATALOG = PresetCatalog.from_config()
    return _CATALOG


def available_presets() -> List[str]:
    return get_catalog().available_presets()


def get_tasks(preset: str = config.DEFAULT_PRESET) -> List[TaskDefinition]:
    return get_catalog().get_tasks(preset)


def preset_info(preset: str = config.DEFAULT_PRESET) -> Dict[str, Any]:
    return get_catalog().preset_info(preset)
