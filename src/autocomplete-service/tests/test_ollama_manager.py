"""Unit tests for OllamaManager"""
import httpx
import pytest
from services.ollama_manager import OllamaManager


def test_extract_model_names():
    """Model names are unique and sorted case-insensitively"""
    body = {"models": [{"name": "qwen2.5:0.5b"}, {"name": "Llama3"}, {"name": "qwen2.5:0.5b"}, {"size": 1}]}

    assert OllamaManager.extract_model_names(body) == ["Llama3", "qwen2.5:0.5b"]


def test_extract_model_names_bad_body():
    """Malformed bodies yield no models"""
    assert OllamaManager.extract_model_names(["x"]) == []
    assert OllamaManager.extract_model_names({"models": None}) == []


def test_base_url_trailing_slash():
    """Trailing slash is dropped from the base URL"""
    assert OllamaManager(base_url="http://ollama.test/").base_url == "http://ollama.test"


class TestListModels:
    """Test cases for list_models"""

    @pytest.mark.asyncio
    async def test_lists_models(self):
        """Model listing reads /api/tags"""
        def handler(request):
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": [{"name": "b"}, {"name": "a"}]})

        ollama = OllamaManager(base_url="http://ollama.test", transport=httpx.MockTransport(handler))

        assert await ollama.list_models() == ["a", "b"]
        await ollama.close()

    @pytest.mark.asyncio
    async def test_unreachable_returns_empty(self):
        """An unreachable server lists no models"""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        ollama = OllamaManager(base_url="http://ollama.test", transport=httpx.MockTransport(handler))

        assert await ollama.list_models() == []

    @pytest.mark.asyncio
    async def test_error_status_returns_empty(self):
        """An error status lists no models"""
        ollama = OllamaManager(
            base_url="http://ollama.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(500))
        )

        assert await ollama.list_models() == []

