"""
TongYi (DashScope compatible mode) chat provider.
"""
from polyllm.core.providers.base import ChatCompletionsProvider


class TongYiProvider(ChatCompletionsProvider):
    default_endpoint = "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions"

    @property
    def name(self) -> str:
        return "tongyi"
