"""Tests for the Ollama model client."""

from unittest.mock import MagicMock, patch

import pytest

from chunklens.model import DEFAULT_MODEL, ModelError, OllamaClient


class TestOllamaClient:
    """Test OllamaClient methods."""

    def test_default_config(self):
        client = OllamaClient()
        assert client.model == DEFAULT_MODEL
        assert "11434" in client.base_url

    def test_custom_model(self):
        client = OllamaClient(model="codellama:13b", base_url="http://gpu-box:11434/")
        assert client.model == "codellama:13b"
        assert client.base_url == "http://gpu-box:11434"

    @patch("httpx.Client.get")
    def test_is_running_true(self, mock_get):
        mock_resp = MagicMock()
        mock_resp.status_code = 200
        mock_get.return_value = mock_resp
        client = OllamaClient()
        assert client.is_running() is True

    @patch("httpx.Client.get")
    def test_is_running_false(self, mock_get):
        from httpx import ConnectError

        mock_get.side_effect = ConnectError("connection refused")
        client = OllamaClient()
        assert client.is_running() is False

    @patch("httpx.Client.get")
    def test_is_model_available_true(self, mock_get):
        mock_resp = MagicMock()
        mock_resp.status_code = 200
        mock_resp.json.return_value = {
            "models": [
                {"name": "qwen2.5-coder:7b"},
                {"name": "llama3:latest"},
            ]
        }
        mock_get.return_value = mock_resp
        assert OllamaClient(model="qwen2.5-coder:7b").is_model_available() is True
        assert OllamaClient(model="llama3").is_model_available() is True

    @patch("httpx.Client.get")
    def test_is_model_available_false(self, mock_get):
        mock_resp = MagicMock()
        mock_resp.status_code = 200
        mock_resp.json.return_value = {"models": [{"name": "llama3:latest"}]}
        mock_get.return_value = mock_resp
        client = OllamaClient(model="qwen2.5-coder:7b")
        assert client.is_model_available() is False

    @patch("httpx.Client.get")
    def test_ensure_ready_when_not_running(self, mock_get):
        from httpx import ConnectError

        mock_get.side_effect = ConnectError("connection refused")
        with pytest.raises(ModelError, match="ollama serve"):
            OllamaClient().ensure_ready()

    @patch("httpx.Client.get")
    def test_ensure_ready_when_model_missing(self, mock_get):
        mock_resp = MagicMock()
        mock_resp.status_code = 200
        mock_resp.json.return_value = {"models": []}
        mock_get.return_value = mock_resp
        with pytest.raises(ModelError, match="ollama pull"):
            OllamaClient().ensure_ready()

    @patch("httpx.Client.post")
    def test_generate_success(self, mock_post):
        mock_resp = MagicMock()
        mock_resp.status_code = 200
        mock_resp.json.return_value = {
            "response": "  Routes HTTP requests to the user service.\n",
        }
        mock_post.return_value = mock_resp
        client = OllamaClient()
        result = client.generate("Summarize this module", system="be brief")
        assert result == "Routes HTTP requests to the user service."
        payload = mock_post.call_args.kwargs["json"]
        assert payload["system"] == "be brief"
        assert payload["stream"] is False

    @patch("httpx.Client.post")
    def test_generate_error(self, mock_post):
        mock_resp = MagicMock()
        mock_resp.status_code = 500
        mock_resp.text = "Internal server error"
        mock_post.return_value = mock_resp
        client = OllamaClient()
        with pytest.raises(ModelError, match="500"):
            client.generate("test prompt")

    @patch("httpx.Client.post")
    def test_generate_timeout(self, mock_post):
        from httpx import TimeoutException

        mock_post.side_effect = TimeoutException("timed out")
        client = OllamaClient()
        with pytest.raises(ModelError, match="timed out"):
            client.generate("test prompt")

    @patch("httpx.Client.post")
    def test_generate_connect_error(self, mock_post):
        from httpx import ConnectError

        mock_post.side_effect = ConnectError("connection refused")
        with OllamaClient() as client:
            with pytest.raises(ModelError, match="Cannot connect"):
                client.generate("test prompt")
