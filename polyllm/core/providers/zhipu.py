"""
ZhiPu (BigModel) chat provider.
"""
from polyllm.core.providers.base import ChatCompletionsProvider


class ZhiPuProvider(ChatCompletionsProvider):
    default_endpoint = "https://open.bigmodel.cn/api/paas/v4/chat/completions"

    @property
    def name(self) -> str:
        return "zhipu"
