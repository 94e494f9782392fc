import pytest

from agent_committee.credentials import Credentials, get_credentials
from agent_committee.errors import ConfigurationError, ValidationError
from agent_committee.validation import sanitize_string, validate_committee_args


def test_credentials_from_env_ignores_blank_keys():
    creds = Credentials.from_env({"OPENAI_API_KEY": "sk-1", "GROQ_API_KEY": "   "})
    assert creds.available_providers() == ["openai"]
    assert creds.default_provider() == "openai"
    assert not creds.is_fallback_mode()


def test_default_provider_priority():
    creds = Credentials(keys={"openai": "a", "anthropic": "b", "groq": "c"})
    assert creds.default_provider() == "groq"
    creds = Credentials(keys={"openai": "a", "gemini": "g", "groq": "c"})
    assert creds.default_provider() == "gemini"


def test_fallback_mode_and_require_key():
    creds = Credentials.from_env({})
    assert creds.is_fallback_mode()
    assert creds.default_provider() is None
    with pytest.raises(ConfigurationError):
        creds.require_providers()
    with pytest.raises(ConfigurationError) as info:
        creds.require_key("openai")
    assert "OPENAI_API_KEY" in info.value.message
    with pytest.raises(ConfigurationError):
        creds.require_key("mistral")


def test_keys_are_not_in_repr():
    creds = Credentials(keys={"openai": "sk-very-secret"})
    assert "sk-very-secret" not in repr(creds)


def test_process_credentials_read_once(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ak")
    first = get_credentials()
    monkeypatch.setenv("OPENAI_API_KEY", "sk")
    assert get_credentials() is first
    assert first.available_providers() == ["anthropic"]


def test_validate_defaults():
    req = validate_committee_args({"request": "  Build a cache  "})
    assert req.request == "Build a cache"
    assert req.preset == "specialized"
    assert req.context == ""
    assert req.provider is None
    assert req.timeout_ms is None


def test_validate_accepts_camel_case_names():
    req = validate_committee_args(
        {
            "request": "r",
            "agentPreset": "backend",
            "provider": "groq",
            "model": " llama ",
            "aggregatorProvider": "openai",
            "aggregatorModel": "gpt-4o",
            "timeoutMs": 5000,
            "context": "earlier chat",
        }
    )
    assert req.preset == "backend"
    assert req.provider == "groq"
    assert req.model == "llama"
    assert req.aggregator_provider == "openai"
    assert req.aggregator_model == "gpt-4o"
    assert req.timeout_ms == 5000
    assert req.context == "earlier chat"


@pytest.mark.parametrize(
    "args, field",
    [
        ({}, "request"),
        ({"request": "   "}, "request"),
        ({"request": 42}, "request"),
        ({"request": "r", "preset": "nope"}, "preset"),
        ({"request": "r", "provider": "mistral"}, "provider"),
        ({"request": "r", "aggregator_provider": "x"}, "aggregator_provider"),
        ({"request": "r", "timeout_ms": 0}, "timeout_ms"),
        ({"request": "r", "timeout_ms": True}, "timeout_ms"),
        ({"request": "r", "timeout_ms": "100"}, "timeout_ms"),
    ],
)
def test_validate_rejects_bad_arguments(args, field):
    with pytest.raises(ValidationError) as info:
        validate_committee_args(args)
    assert info.value.field == field


def test_validate_rejects_non_object():
    with pytest.raises(ValidationError):
        validate_committee_args(["request"])


def test_sanitize_string_strips_control_chars():
    assert sanitize_string("a\x00b\x07c\nd\te") == "abc\nd\te"
    assert sanitize_string(None) == ""


@pytest.mark.parametrize("context", ["", "   ", "\n\t", "\x00"])
def test_blank_context_is_treated_as_absent(context):
    req = validate_committee_args({"request": "r", "context": context})
    assert req.context == ""


def test_non_string_context_is_rejected():
    with pytest.raises(ValidationError) as info:
        validate_committee_args({"request": "r", "context": 5})
    assert info.value.field == "context"
