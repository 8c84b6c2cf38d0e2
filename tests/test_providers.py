"""
Unit tests for provider adapters and the provider registry.
"""
import json

import pytest

from polyllm.core.exceptions import EmptyResponse, MalformedResponse, UnknownProvider
from polyllm.core.providers import (
    LMStudioProvider,
    OpenAIProvider,
    OpenRouterProvider,
    ProviderRegistry,
    SupportsCustomEndpoint,
    SupportsMessages,
    TongYiProvider,
    ZhiPuProvider,
    ZhiPuViewProvider,
    default_registry,
)
from polyllm.schemas.prompt import Message


class TestChatProviders:
    """OpenAI-compatible chat providers."""

    @pytest.fixture
    def provider(self):
        return ZhiPuProvider(api_key="test-api-key", model="glm-4")

    def test_headers(self, provider):
        headers = provider.headers()
        assert headers["Authorization"] == "Bearer test-api-key"
        assert headers["Content-Type"] == "application/json"

    def test_prepare_request_wraps_prompt_as_user_message(self, provider):
        body = json.loads(provider.prepare_request("Hello", {}))
        assert body == {"model": "glm-4", "messages": [{"role": "user", "content": "Hello"}]}

    def test_prepare_request_merges_overrides_over_defaults(self):
        class TunedProvider(OpenAIProvider):
            def default_options(self):
                return {"temperature": 0.2, "max_tokens": 50}

        provider = TunedProvider(api_key="k", model="m")
        body = json.loads(provider.prepare_request("Hi", {"temperature": 0.9, "top_p": 0.5}))
        assert body["temperature"] == 0.9
        assert body["max_tokens"] == 50
        assert body["top_p"] == 0.5

    def test_prepare_chat_request_keeps_message_order(self, provider):
        messages = [
            Message(role="system", content="Be brief"),
            Message(role="user", content="Hi"),
            Message(role="assistant", content="Hello"),
            Message(role="user", content="Bye"),
        ]
        body = json.loads(provider.prepare_chat_request(messages, {}))
        assert [m["role"] for m in body["messages"]] == ["system", "user", "assistant", "user"]
        assert body["messages"][-1]["content"] == "Bye"

    def test_parse_response(self, provider):
        body = json.dumps({"choices": [{"message": {"content": "Answer"}}]}).encode()
        assert provider.parse_response(body) == "Answer"

    @pytest.mark.parametrize(
        "payload",
        [
            {"choices": []},
            {"choices": [{"message": {"content": ""}}]},
            {"choices": [{"message": {}}]},
            {"id": "abc"},
        ],
    )
    def test_parse_response_empty(self, provider, payload):
        with pytest.raises(EmptyResponse):
            provider.parse_response(json.dumps(payload).encode())

    @pytest.mark.parametrize("body", [b'{"choices": [', b"not json", b"[1, 2]"])
    def test_parse_response_malformed(self, provider, body):
        with pytest.raises(MalformedResponse):
            provider.parse_response(body)

    def test_endpoints(self):
        assert OpenAIProvider("k", "m").endpoint == "https://api.openai.com/v1/chat/completions"
        assert ZhiPuProvider("k", "m").endpoint == "https://open.bigmodel.cn/api/paas/v4/chat/completions"
        assert TongYiProvider("k", "m").endpoint.startswith("https://dashscope.aliyuncs.com/")
        assert OpenRouterProvider("k", "m").endpoint == "https://openrouter.ai/api/v1/chat/completions"

    def test_openrouter_attribution_headers(self):
        provider = OpenRouterProvider("k", "m", site_url="https://example.com", app_name="demo")
        headers = provider.headers()
        assert headers["HTTP-Referer"] == "https://example.com"
        assert headers["X-Title"] == "demo"

    def test_capabilities(self):
        assert isinstance(OpenAIProvider("k", "m"), SupportsMessages)
        assert not isinstance(OpenAIProvider("k", "m"), SupportsCustomEndpoint)
        assert isinstance(LMStudioProvider(), SupportsCustomEndpoint)
        assert not isinstance(ZhiPuViewProvider("k", "m"), SupportsMessages)


class TestLMStudioProvider:

    def test_no_key_omits_authorization(self):
        assert "Authorization" not in LMStudioProvider(api_key="").headers()

    def test_set_endpoint(self):
        provider = LMStudioProvider()
        provider.set_endpoint("http://10.0.0.5:1234/v1/chat/completions")
        assert provider.endpoint == "http://10.0.0.5:1234/v1/chat/completions"


class TestZhiPuViewProvider:

    @pytest.fixture
    def provider(self):
        return ZhiPuViewProvider(api_key="k", model="cogview-3")

    def test_prepare_request_keeps_image_options_only(self, provider):
        body = json.loads(provider.prepare_request("a city in a bottle", {"size": "1024x1024", "temperature": 0.7}))
        assert body == {"model": "cogview-3", "prompt": "a city in a bottle", "size": "1024x1024"}

    def test_parse_response_returns_first_url(self, provider):
        body = json.dumps({"created": 1, "data": [{"url": "https://img/1.png"}, {"url": "https://img/2.png"}]})
        assert provider.parse_response(body.encode()) == "https://img/1.png"

    def test_parse_response_without_data(self, provider):
        with pytest.raises(EmptyResponse):
            provider.parse_response(b'{"created": 1, "data": []}')


class TestProviderRegistry:

    def test_unknown_provider(self):
        registry = ProviderRegistry()
        with pytest.raises(UnknownProvider) as exc_info:
            registry.resolve("missing", api_key="k", model="m")
        assert exc_info.value.name == "missing"

    def test_last_registration_wins(self):
        registry = ProviderRegistry()
        registry.register("x", OpenAIProvider)
        registry.register("x", ZhiPuProvider)
        provider = registry.resolve("x", api_key="k", model="m")
        assert isinstance(provider, ZhiPuProvider)
        assert registry.names() == ["x"]

    def test_default_registry_has_builtins(self):
        registry = default_registry()
        for name in ("openai", "openrouter", "lmstudio", "zhipu", "tongyi", "zhipu_view"):
            assert name in registry
            assert registry.resolve(name, api_key="k", model="m").name == name

    def test_resolve_passes_extra_arguments(self):
        provider = default_registry().resolve(
            "lmstudio", api_key="", model="local", endpoint="http://127.0.0.1:9999/v1/chat/completions"
        )
        assert provider.endpoint == "http://127.0.0.1:9999/v1/chat/completions"
