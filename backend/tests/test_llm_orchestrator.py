from roofdesk.services.llm.orchestrator import LLMOrchestrator
from roofdesk.services.llm.types import (
    LLMOrchestrationError,
    LLMProviderError,
    LLMRequest,
    LLMStage,
    classify_retryable_error,
)


class _FakeProvider:
    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []

    def generate(self, *, model: str, prompt: str, system=None, timeout_seconds: int = 60,
                 expect_json: bool = False, max_tokens: int = 2000):
        self.calls.append({"model": model, "prompt": prompt, "system": system})
        if not self._responses:
            return ""
        nxt = self._responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return str(nxt)


def test_orchestrator_falls_back_to_next_provider(monkeypatch):
    orchestrator = LLMOrchestrator()
    orchestrator._settings.stage_retry_backoff_seconds = 0
    routes = [("anthropic", "claude-3-5-haiku-latest"), ("openai", "gpt-4.1-mini")]
    monkeypatch.setattr(orchestrator, "_routes_for_stage", lambda _stage: routes)
    providers = {
        "anthropic": _FakeProvider([LLMProviderError("ANTHROPIC_API_KEY is not set", retryable=False)]),
        "openai": _FakeProvider(["The roof shows functional hail damage."]),
    }
    monkeypatch.setattr(orchestrator, "_provider", lambda name: providers[name])

    response = orchestrator.run_stage(
        LLMRequest(
            stage=LLMStage.claim_narrative,
            prompt="Write the repair justification.",
            system="You are a roofing claims writer.",
            timeout_seconds=30,
        )
    )
    assert response.provider == "openai"
    assert response.model == "gpt-4.1-mini"
    assert response.text.startswith("The roof")
    assert len(response.attempts) == 2
    assert response.attempts[0].provider == "anthropic"
    assert response.attempts[0].status == "terminal_error"
    assert response.attempts[1].provider == "openai"
    assert providers["openai"].calls[0]["system"] == "You are a roofing claims writer."


def test_orchestrator_retries_retryable_provider_errors(monkeypatch):
    orchestrator = LLMOrchestrator()
    orchestrator._settings.stage_retry_backoff_seconds = 0
    orchestrator._settings.stage_retry_max_attempts = 2
    monkeypatch.setattr(orchestrator, "_routes_for_stage", lambda _stage: [("gemini", "gemini-2.0-flash")])
    provider = _FakeProvider(
        [
            LLMProviderError("timeout", retryable=True),
            "Summary of the claim.",
        ]
    )
    monkeypatch.setattr(orchestrator, "_provider", lambda _name: provider)

    response = orchestrator.run_stage(
        LLMRequest(stage=LLMStage.executive_summary, prompt="Summarize.", timeout_seconds=20)
    )
    assert response.provider == "gemini"
    assert len(response.attempts) == 2
    assert response.attempts[0].status == "retryable_error"
    assert response.attempts[1].status == "success"
    assert response.attempts[1].retry_count == 1


def test_orchestrator_raises_when_all_routes_fail(monkeypatch):
    orchestrator = LLMOrchestrator()
    orchestrator._settings.stage_retry_backoff_seconds = 0
    monkeypatch.setattr(orchestrator, "_routes_for_stage", lambda _stage: [("gemini", "gemini-2.0-flash")])
    monkeypatch.setattr(
        orchestrator,
        "_provider",
        lambda _name: _FakeProvider([LLMProviderError("schema invalid", retryable=False)]),
    )

    try:
        orchestrator.run_stage(
            LLMRequest(stage=LLMStage.claim_narrative, prompt="Write.", timeout_seconds=20)
        )
    except LLMOrchestrationError as exc:
        assert exc.attempts
        assert exc.attempts[0].status == "terminal_error"
        assert exc.attempts[0].error_class == "LLMProviderError"
    else:  # pragma: no cover
        raise AssertionError("Expected LLMOrchestrationError")


def test_classify_retryable_error_recognises_transient_failures():
    assert classify_retryable_error(RuntimeError("429 Too Many Requests"))
    assert classify_retryable_error(RuntimeError("Request timed out"))
    assert classify_retryable_error(RuntimeError("upstream returned 503"))
    assert not classify_retryable_error(RuntimeError("invalid api key"))
