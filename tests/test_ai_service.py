from unittest.mock import MagicMock

import pytest

from src.ai import prompts
from src.ai.service import AIService, AIServiceError, truncate_transcript


def make_service(*responses):
    client = MagicMock()
    client.models.generate_content.side_effect = [
        r if isinstance(r, Exception) else MagicMock(text=r) for r in responses
    ]
    return AIService(client=client, model="gemini-test", retry_attempts=2, retry_delay=0), client


def test_truncate_transcript():
    assert truncate_transcript("short", max_length=10) == "short"
    assert truncate_transcript("x" * 20, max_length=10) == "x" * 10 + "..."


def test_summarize_sends_prompt_and_system_instruction():
    service, client = make_service("## Overview")

    assert service.summarize("the transcript") == "## Overview"
    kwargs = client.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "gemini-test"
    assert "the transcript" in kwargs["contents"]
    assert kwargs["config"]["system_instruction"] == prompts.SUMMARY_SYSTEM


def test_mindmap_uses_mindmap_system():
    service, client = make_service("- root")

    assert service.generate_mindmap("words") == "- root"
    assert client.models.generate_content.call_args.kwargs["config"]["system_instruction"] == prompts.MINDMAP_SYSTEM


def test_transient_failure_is_retried():
    service, client = make_service(RuntimeError("503"), "summary")

    assert service.summarize("words") == "summary"
    assert client.models.generate_content.call_count == 2


def test_empty_response_is_an_error():
    service, _ = make_service("")

    with pytest.raises(AIServiceError):
        service.summarize("words")


def test_chat_maps_roles_for_gemini():
    service, client = make_service("An answer")
    messages = [
        {"role": "user", "content": "What is it about?"},
        {"role": "assistant", "content": "Podcasts."},
        {"role": "user", "content": "More?"},
    ]

    assert service.chat(messages, "transcript text") == "An answer"
    kwargs = client.models.generate_content.call_args.kwargs
    assert [c["role"] for c in kwargs["contents"]] == ["user", "model", "user"]
    assert "transcript text" in kwargs["config"]["system_instruction"]


def test_chat_without_usable_messages():
    service, client = make_service()

    with pytest.raises(AIServiceError):
        service.chat([{"role": "system", "content": "ignored"}])
    client.models.generate_content.assert_not_called()


def test_missing_api_key(monkeypatch):
    from src.ai import service as service_module

    monkeypatch.setattr(service_module.cfg, "GEMINI_API_KEY", "")

    with pytest.raises(AIServiceError, match="GEMINI_API_KEY"):
        AIService(retry_attempts=1).summarize("words")
