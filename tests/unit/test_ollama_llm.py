"""Tests for Ollama LLM provider."""

import pytest
from unittest.mock import patch, MagicMock

from src.generation.ollama_llm import DEFAULT_SYSTEM_PROMPT, OllamaLLM


def chat_client(content="{}"):
    client = MagicMock()
    client.chat.return_value = {"message": {"content": content}}
    return client


class TestOllamaLLM:
    """Tests for OllamaLLM."""

    @patch("src.generation.ollama_llm.ollama.Client")
    def test_init_defaults(self, mock_client):
        """Should default to low-temperature JSON judging."""
        # Act
        llm = OllamaLLM()

        # Assert
        assert llm.temperature == 0.1
        assert llm.json_mode is True
        assert llm.system_prompt == DEFAULT_SYSTEM_PROMPT
        mock_client.assert_called_once_with(host="http://localhost:11434")

    @patch("src.generation.ollama_llm.ollama.Client")
    def test_generate(self, mock_client_class):
        """Should send system and user messages and return the content."""
        # Arrange
        mock_client = chat_client('{"score": 90}')
        mock_client_class.return_value = mock_client
        llm = OllamaLLM(model="llama3.1:8b", max_tokens=512)

        # Act
        result = llm.generate("Rate this answer")

        # Assert
        assert result == '{"score": 90}'
        kwargs = mock_client.chat.call_args.kwargs
        assert kwargs["model"] == "llama3.1:8b"
        assert kwargs["messages"][1] == {"role": "user", "content": "Rate this answer"}
        assert kwargs["options"] == {"temperature": 0.1, "num_predict": 512}
        assert kwargs["format"] == "json"

    @patch("src.generation.ollama_llm.ollama.Client")
    def test_generate_without_json_mode(self, mock_client_class):
        """Should not constrain the format when json_mode is off."""
        mock_client = chat_client("plain text")
        mock_client_class.return_value = mock_client

        OllamaLLM(json_mode=False).generate("Question")

        assert "format" not in mock_client.chat.call_args.kwargs

    @patch("src.generation.ollama_llm.ollama.Client")
    def test_generate_with_custom_system_prompt(self, mock_client_class):
        """Should use custom system prompt when provided."""
        mock_client = chat_client()
        mock_client_class.return_value = mock_client

        OllamaLLM().generate("Question", system_prompt="Custom prompt")

        messages = mock_client.chat.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "Custom prompt"}

    @patch("src.generation.ollama_llm.ollama.Client")
    def test_generate_propagates_errors(self, mock_client_class):
        """Should let transport errors reach the caller."""
        mock_client = MagicMock()
        mock_client.chat.side_effect = ConnectionError("refused")
        mock_client_class.return_value = mock_client

        with pytest.raises(ConnectionError):
            OllamaLLM().generate("Question")

    @patch("src.generation.ollama_llm.ollama.Client")
    def test_model_name_property(self, mock_client):
        """Should return model name."""
        assert OllamaLLM(model="custom-model").model_name == "custom-model"

    @patch("src.generation.ollama_llm.ollama.Client")
    def test_health_check_success(self, mock_client_class):
        """Should return True when Ollama is accessible."""
        mock_client_class.return_value = MagicMock()

        assert OllamaLLM().health_check() is True

    @patch("src.generation.ollama_llm.ollama.Client")
    def test_health_check_failure(self, mock_client_class):
        """Should return False when Ollama is not accessible."""
        mock_client = MagicMock()
        mock_client.list.side_effect = Exception("Connection failed")
        mock_client_class.return_value = mock_client

        assert OllamaLLM().health_check() is False
