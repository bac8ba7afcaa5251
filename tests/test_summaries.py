from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import openai
import pytest

from read_later import summaries
from read_later.exceptions import MissingCredential, TransportFailure


def _completion(content):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


def _client(result=None, error=None):
    client = MagicMock()
    if error is not None:
        client.chat.completions.create.side_effect = error
    else:
        client.chat.completions.create.return_value = result
    return client


def test_missing_api_key_fails_before_any_request():
    with patch("read_later.summaries.OpenAI") as mock_openai:
        with pytest.raises(MissingCredential, match="API key is required"):
            summaries.summarize_text("content", api_key="")

    mock_openai.assert_not_called()


def test_summarize_text_sends_prompt_and_content():
    client = _client(_completion("A fine summary"))

    summary = summaries.summarize_text(
        "Article body",
        api_key="sk-test-1234",
        model="openai/gpt-4",
        prompt="Summarize: ",
        client=client,
    )

    assert summary == "A fine summary"
    client.chat.completions.create.assert_called_once_with(
        model="openai/gpt-4",
        messages=[{"role": "user", "content": "Summarize: Article body"}],
        temperature=0.7,
        max_tokens=1000,
    )


def test_summarize_text_uses_default_prompt_and_model():
    client = _client(_completion("ok"))

    summaries.summarize_text("Body", api_key="key", client=client)

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == summaries.DEFAULT_MODEL
    assert kwargs["messages"][0]["content"] == summaries.DEFAULT_PROMPT + "Body"


def test_empty_response_yields_placeholder():
    assert (
        summaries.summarize_text(
            "Body", api_key="key", client=_client(SimpleNamespace(choices=[]))
        )
        == summaries.NO_SUMMARY
    )
    assert (
        summaries.summarize_text("Body", api_key="key", client=_client(_completion("")))
        == summaries.NO_SUMMARY
    )


def test_api_status_error_becomes_transport_failure():
    request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
    response = httpx.Response(429, request=request)
    error = openai.APIStatusError("rate limited", response=response, body=None)

    with pytest.raises(TransportFailure) as excinfo:
        summaries.summarize_text("Body", api_key="key", client=_client(error=error))

    assert excinfo.value.status_code == 429
    assert str(excinfo.value) == "API request failed: Too Many Requests"


def test_connection_error_becomes_transport_failure():
    request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
    error = openai.APIConnectionError(request=request)

    with pytest.raises(TransportFailure) as excinfo:
        summaries.summarize_text("Body", api_key="key", client=_client(error=error))

    assert excinfo.value.status_code is None


def test_build_client_targets_openrouter():
    with patch("read_later.summaries.OpenAI") as mock_openai:
        summaries.build_client("sk-key", timeout=5.0)

    kwargs = mock_openai.call_args.kwargs
    assert kwargs["api_key"] == "sk-key"
    assert kwargs["base_url"] == summaries.OPENROUTER_BASE_URL
    assert kwargs["timeout"] == 5.0
    assert kwargs["default_headers"]["X-Title"] == summaries.APP_TITLE
    assert "HTTP-Referer" in kwargs["default_headers"]


def test_client_is_built_when_not_supplied():
    with patch("read_later.summaries.OpenAI") as mock_openai:
        mock_openai.return_value = _client(_completion("built"))

        assert summaries.summarize_text("Body", api_key="key", timeout=7.0) == "built"

    assert mock_openai.call_args.kwargs["timeout"] == 7.0


def test_default_prompts_catalogue():
    ids = [prompt.id for prompt in summaries.DEFAULT_PROMPTS]

    assert ids == ["default", "brief", "bullet-points", "academic"]
    assert summaries.DEFAULT_PROMPTS[0].content == summaries.DEFAULT_PROMPT
