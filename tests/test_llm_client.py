import pytest

from creative_factory.llm.client import LLMClient, LLMClientConfigError, LLMGenerationParams


@pytest.mark.parametrize(
    "model,env_var",
    [
        ("gpt-4.1-mini", "OPENAI_API_KEY"),
        ("claude-sonnet-4-5", "ANTHROPIC_API_KEY"),
        ("gemini-2.0-flash", "GEMINI_API_KEY"),
    ],
)
def test_missing_provider_key_raises_config_error(monkeypatch, model, env_var):
    monkeypatch.delenv(env_var, raising=False)

    with pytest.raises(LLMClientConfigError, match=env_var):
        LLMClient().generate_text("hello", LLMGenerationParams(model=model))


def test_openai_request_carries_system_prompt_and_json_mode(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    captured = {}

    class _Message:
        content = '{"ok": true}'

    class _Choice:
        message = _Message()

    class _Completion:
        choices = [_Choice()]

    class _Completions:
        def create(self, **kwargs):
            captured.update(kwargs)
            return _Completion()

    class _Chat:
        completions = _Completions()

    class _FakeOpenAI:
        chat = _Chat()

    client = LLMClient()
    client._openai_client = _FakeOpenAI()

    text = client.generate_text(
        "write copy",
        LLMGenerationParams(
            model="gpt-4.1-mini",
            system="be brief",
            response_format={"type": "json_object"},
            timeout_seconds=12,
        ),
    )

    assert text == '{"ok": true}'
    assert captured["messages"] == [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "write copy"},
    ]
    assert captured["response_format"] == {"type": "json_object"}
    assert captured["timeout"] == 12.0
