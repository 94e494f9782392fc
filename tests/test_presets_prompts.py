import json

import pytest

from agent_committee.errors import ConfigurationError, ValidationError
from agent_committee.presets import BUILTIN_PRESETS, PresetCatalog, load_presets_file, validate_presets
from agent_committee.prompts import get_renderer, render_prompts
from agent_committee.providers import reduce_prompt
from agent_committee.types import TaskDefinition


def test_builtin_presets_are_valid():
    presets = validate_presets({"presets": BUILTIN_PRESETS})
    assert list(presets) == ["specialized", "frontend", "backend", "fullstack"]
    catalog = PresetCatalog()
    assert len(catalog.get_tasks("specialized")) == 7
    for key in ("frontend", "backend", "fullstack"):
        assert len(catalog.get_tasks(key)) == 4


def test_task_definitions_carry_agent_fields():
    task = PresetCatalog().get_tasks("specialized")[0]
    assert task.name == "ArchitectAgent"
    assert task.guidance == task.approach
    assert task.guidelines


def test_unknown_preset_lists_available():
    with pytest.raises(ValidationError) as info:
        PresetCatalog().get_tasks("mobile")
    assert 'Preset "mobile" not found' in info.value.message
    assert "specialized" in info.value.message


def test_preset_info_shape():
    info = PresetCatalog().preset_info("backend")
    assert info["key"] == "backend"
    assert info["agentCount"] == 4
    assert set(info["agents"][0]) == {"name", "role", "description", "focus"}


def test_validate_presets_reports_missing_field():
    data = {
        "presets": {
            "tiny": {
                "name": "Tiny",
                "description": "d",
                "agents": [{"name": "Solo", "role": "r", "description": "d", "focus": "f", "guidelines": ["g"]}],
            }
        }
    }
    with pytest.raises(ConfigurationError) as info:
        validate_presets(data)
    assert 'missing required field: "approach"' in info.value.message


def test_load_presets_file(tmp_path):
    path = tmp_path / "presets.json"
    path.write_text(
        json.dumps(
            {
                "presets": {
                    "tiny": {
                        "name": "Tiny",
                        "description": "d",
                        "agents": [
                            {
                                "name": "Solo",
                                "role": "Generalist",
                                "description": "d",
                                "focus": "f",
                                "guidelines": ["g"],
                                "approach": "a",
                            }
                        ],
                    }
                }
            }
        )
    )
    catalog = PresetCatalog(load_presets_file(str(path)))
    assert catalog.available_presets() == ["tiny"]
    assert catalog.get_tasks("tiny")[0].role == "Generalist"

    with pytest.raises(ConfigurationError):
        load_presets_file(str(tmp_path / "missing.json"))
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(ConfigurationError):
        load_presets_file(str(bad))


TASK = TaskDefinition(
    name="CoderAgent",
    role="Senior Developer",
    guidance="Write clean code",
    description="Writes the code",
    focus="Implementation",
    approach="Write clean code",
    guidelines=("Keep functions small", "Test everything"),
)


def test_specialized_prompt_layout():
    prompt = get_renderer("specialized")(TASK, "Build a rate limiter", "")
    assert "AGENT: CoderAgent (Senior Developer)" in prompt
    assert "Task: Build a rate limiter" in prompt
    assert "Guidelines for CoderAgent:" in prompt
    assert "1. Keep functions small\n2. Test everything" in prompt
    assert "Approach: Write clean code" in prompt
    assert "CONTEXT FROM OTHER CHAT WINDOWS" not in prompt


def test_context_block_and_preset_styles():
    prompts = render_prompts("backend", [TASK], "Build it", "We use Postgres")
    assert "BACKEND AGENT: CoderAgent (Senior Developer)" in prompts[0]
    assert "--- CONTEXT FROM OTHER CHAT WINDOWS ---\nWe use Postgres\n--- END CONTEXT ---" in prompts[0]
    assert "--- BACKEND-SPECIFIC CONSIDERATIONS ---" in prompts[0]
    assert "IMPORTANT: Consider the above context" not in prompts[0]


def test_rendering_is_deterministic_and_unknown_preset_falls_back():
    assert render_prompts("specialized", [TASK], "r") == render_prompts("specialized", [TASK], "r")
    assert render_prompts("custom", [TASK], "r") == render_prompts("specialized", [TASK], "r")


def test_rendered_prompt_survives_groq_reduction():
    prompt = get_renderer("frontend")(TASK, "Build a dashboard", "x" * 9000)
    reduced = reduce_prompt(prompt, 2000)
    assert reduced.startswith("You are CoderAgent, a Senior Developer.")
    assert "Task: Build a dashboard" in reduced
