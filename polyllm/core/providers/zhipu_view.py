"""
ZhiPu image generation provider (CogView).

The "answer" of an image request is the URL of the first generated image.
"""
from typing import Any, Mapping

from polyllm.core.exceptions import EmptyResponse
from polyllm.core.providers.base import Provider

# Sampling options of the chat providers do not apply to image generation
IMAGE_OPTIONS = ("size", "n", "seed")


class ZhiPuViewProvider(Provider):

    @property
    def name(self) -> str:
        return "zhipu_view"

    @property
    def endpoint(self) -> str:
        return "https://open.bigmodel.cn/api/paas/v4/images/generations"

    def prepare_request(self, prompt: str, options: Mapping[str, Any]) -> bytes:
        body = {"model": self.model, "prompt": prompt}
        image_options = {k: v for k, v in (options or {}).items() if k in IMAGE_OPTIONS}
        return self._encode(self.merge_options(body, image_options))

    def parse_response(self, body: bytes) -> str:
        data = self._decode(body)
        images = data.get("data") or []
        url = images[0].get("url") if images and isinstance(images[0], dict) else None
        if not url:
            raise EmptyResponse("empty response from zhipu_view API")
        return url
