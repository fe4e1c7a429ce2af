import itertools

import pytest

from creative_factory.llm.client import LLMClientConfigError
from creative_factory.services import generation as generation_module
from creative_factory.services.generation import Err, GenerationService, Ok, extract_first_json_object
from fakes import FakeLLM


def test_extract_first_json_object_ignores_prose_and_fences():
    text = 'Here you go:\n```json\n{"approved": true, "issues": ["a {brace} in a string"]}\n```\nThanks!'

    assert extract_first_json_object(text) == {"approved": True, "issues": ["a {brace} in a string"]}


def test_extract_first_json_object_returns_the_first_of_several():
    assert extract_first_json_object('{"a": {"b": 1}} {"c": 2}') == {"a": {"b": 1}}


@pytest.mark.parametrize("text", ["", "   ", "no json here", '{"unterminated": true'])
def test_extract_first_json_object_rejects_unusable_text(text):
    with pytest.raises(ValueError):
        extract_first_json_object(text)


def _service(fake_llm: FakeLLM, **kwargs) -> GenerationService:
    return GenerationService(fake_llm, model="gpt-4.1-mini", **kwargs)


def test_request_json_returns_ok_with_payload():
    fake_llm = FakeLLM()
    fake_llm.set_reply("creative_compliance", 'Sure! {"approved": true, "issues": []}')

    result = _service(fake_llm).request_json(purpose="creative_compliance", system="sys", prompt="check this")

    assert result == Ok({"approved": True, "issues": []})
    assert fake_llm.calls == [("creative_compliance", "check this")]


def test_request_json_turns_provider_errors_into_err():
    fake_llm = FakeLLM()
    fake_llm.set_reply("creative_compliance", ConnectionError("network unreachable"))

    result = _service(fake_llm).request_json(purpose="creative_compliance", system="sys", prompt="p")

    assert isinstance(result, Err)
    assert "ConnectionError" in result.reason
    assert "network unreachable" in result.reason


def test_request_json_lets_missing_provider_configuration_propagate():
    fake_llm = FakeLLM()
    fake_llm.set_reply("creative_copywriting", LLMClientConfigError("OPENAI_API_KEY not configured"))

    with pytest.raises(LLMClientConfigError):
        _service(fake_llm).request_json(purpose="creative_copywriting", system="sys", prompt="p")


@pytest.mark.parametrize("reply", ["", "   ", "I cannot help with that."])
def test_request_json_turns_unusable_replies_into_err(reply):
    fake_llm = FakeLLM()
    fake_llm.set_reply("creative_copywriting", reply)

    result = _service(fake_llm).request_json(purpose="creative_copywriting", system="sys", prompt="p")

    assert isinstance(result, Err)


def test_request_json_past_deadline_is_err(monkeypatch):
    ticks = itertools.count(0.0, 5.0)
    monkeypatch.setattr(generation_module.time, "monotonic", lambda: next(ticks))
    fake_llm = FakeLLM()

    result = _service(fake_llm, timeout_seconds=1).request_json(
        purpose="creative_compliance", system="sys", prompt="p"
    )

    assert isinstance(result, Err)
    assert "deadline" in result.reason


def test_request_json_sends_purpose_and_json_mode():
    captured = []

    def _reply(prompt, params):
        captured.append(params)
        return "{}"

    fake_llm = FakeLLM()
    fake_llm.set_reply("creative_blueprint", _reply)

    result = _service(fake_llm, temperature=0.0).request_json(purpose="creative_blueprint", system="sys", prompt="p")

    assert result == Ok({})
    params = captured[0]
    assert params.purpose == "creative_blueprint"
    assert params.system == "sys"
    assert params.response_format == {"type": "json_object"}
    assert params.temperature == 0.0
    assert params.model == "gpt-4.1-mini"
