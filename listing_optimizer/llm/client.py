import json
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..errors import LLMRequestError


class OpenRouterClient:
    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int,
        referer: str = "",
        app_name: str = "",
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.referer = referer
        self.app_name = app_name
        self.session = requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        if self.app_name:
            headers["X-Title"] = self.app_name
        return headers

    def _post(self, payload: Dict[str, Any], timeout: Optional[int] = None) -> Dict[str, Any]:
        if not self.api_key:
            raise LLMRequestError("OPENROUTER_API_KEY is not configured.")
        if not payload.get("model"):
            raise LLMRequestError("Model name is empty.")

        try:
            response = self.session.post(
                self.base_url,
                headers=self._headers(),
                data=json.dumps(payload),
                timeout=timeout or self.timeout,
            )
        except requests.RequestException as exc:
            raise LLMRequestError(f"OpenRouter request failed: {exc}") from exc

        if response.status_code >= 400:
            raise LLMRequestError(
                f"OpenRouter returned {response.status_code}: {response.text}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise LLMRequestError(f"Failed to parse OpenRouter response: {exc}") from exc

        if isinstance(data, dict) and data.get("error"):
            raise LLMRequestError(f"OpenRouter error: {data['error']}")
        return data

    @staticmethod
    def _message(data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            message = data["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMRequestError("OpenRouter response is missing a message.") from exc
        if not isinstance(message, dict):
            raise LLMRequestError("OpenRouter response is missing a message.")
        return message

    def chat(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        temperature: float = 0.2,
        max_tokens: int = 1024,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> Tuple[str, Dict[str, Any]]:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format:
            payload["response_format"] = response_format

        data = self._post(payload)
        content = self._message(data).get("content")
        if not isinstance(content, str) or not content.strip():
            raise LLMRequestError("OpenRouter response is missing content.")
        return content, data

    def generate_image(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        aspect_ratio: str = "1:1",
        timeout: Optional[int] = None,
    ) -> Tuple[str, Dict[str, Any]]:
        """Request an image-output completion and return the first image URL."""
        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "modalities": ["image", "text"],
            "image_config": {"aspect_ratio": aspect_ratio},
        }
        data = self._post(payload, timeout=timeout)
        images = self._message(data).get("images") or []
        for image in images:
            if not isinstance(image, dict):
                continue
            url = (image.get("image_url") or {}).get("url")
            if isinstance(url, str) and url:
                return url, data
        raise LLMRequestError("No image generated in response.")
