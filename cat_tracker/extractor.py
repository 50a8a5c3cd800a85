"""Adapter around the external image-understanding capability.

The adapter sends a photo to an OpenAI-compatible chat-completions endpoint and
turns the JSON answer into a FeatureRecord. It never invents a record: any
transport problem, non-2xx status or unparseable answer raises ExtractionFailed.
"""

import base64
import json
import logging
import re
from typing import Any, Optional, Protocol, Tuple

import httpx
from pydantic import ValidationError as PydanticValidationError

from .config import Settings
from .errors import ExtractionFailed, ValidationError
from .features import FeatureRecord

logger = logging.getLogger(__name__)

PROMPT = """Analyze this cat image and extract identifying features. Return a JSON object with these fields:
- breed: estimated breed
- colors: array of primary colors
- patterns: array of patterns (solid, tabby, calico, etc.)
- distinctive_features: array of unique features (white paws, facial markings, etc.)
- estimated_age: young/adult/senior
- size: small/medium/large

Only return the JSON object, no other text."""

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)

Location = Tuple[float, float]


class FeatureExtractor(Protocol):
    def extract(
        self,
        image_bytes: bytes,
        location_hint: Optional[Location] = None,
        timeout: Optional[float] = None,
    ) -> FeatureRecord:
        ...


def detect_image_type(image_bytes: bytes) -> str:
    """Return the MIME type of a supported image, raising ValidationError otherwise."""
    if not image_bytes:
        raise ValidationError("Image is missing or empty")
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    raise ValidationError("Unsupported image encoding (expected JPEG, PNG, GIF or WEBP)")


def parse_feature_payload(content: Optional[str]) -> FeatureRecord:
    """Parse the model's text answer into a FeatureRecord."""
    if not isinstance(content, str) or not content.strip():
        raise ExtractionFailed("Feature extraction returned an empty answer")
    text = content.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ExtractionFailed(f"Feature extraction answer is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise ExtractionFailed("Feature extraction answer is not a JSON object")
    try:
        return FeatureRecord.model_validate(data)
    except PydanticValidationError as e:
        raise ExtractionFailed(f"Feature extraction answer has an unexpected shape: {e}") from e


class VisionFeatureExtractor:
    """FeatureExtractor backed by a vision chat-completions API."""

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        model: str = "gpt-4o",
        max_tokens: int = 500,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "VisionFeatureExtractor":
        return cls(
            api_url=settings.vision_api_url,
            api_key=settings.vision_api_key,
            model=settings.vision_model,
            max_tokens=settings.vision_max_tokens,
            timeout=settings.vision_timeout,
        )

    def build_request(self, image_bytes: bytes, location_hint: Optional[Location] = None) -> dict:
        mime_type = detect_image_type(image_bytes)
        prompt = PROMPT
        if location_hint is not None:
            lat, lng = location_hint
            prompt += f"\n\nThe photo was taken near latitude {lat}, longitude {lng}."
        encoded = base64.b64encode(image_bytes).decode("ascii")
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                    ],
                }
            ],
        }

    def extract(
        self,
        image_bytes: bytes,
        location_hint: Optional[Location] = None,
        timeout: Optional[float] = None,
    ) -> FeatureRecord:
        payload = self.build_request(image_bytes, location_hint)
        if not self.api_key:
            logger.error("Vision API key not configured")
            raise ExtractionFailed("Feature extraction API key not configured")

        logger.info("Requesting features for image of %d bytes (model=%s)", len(image_bytes), self.model)
        try:
            with httpx.Client(
                timeout=timeout if timeout is not None else self.timeout,
                transport=self._transport,
            ) as client:
                response = client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.TimeoutException as e:
            logger.warning("Feature extraction timed out: %s", e)
            raise ExtractionFailed("Feature extraction timed out") from e
        except httpx.HTTPError as e:
            logger.warning("Feature extraction unreachable: %s", e)
            raise ExtractionFailed(f"Feature extraction unreachable: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            logger.error("Feature extraction error status=%s body=%s", response.status_code, response.text[:500])
            raise ExtractionFailed(f"Feature extraction returned status {response.status_code}")

        features = parse_feature_payload(_message_content(response))
        logger.info("Extracted features: %s", features.to_storage())
        return features


def _message_content(response: httpx.Response) -> Optional[str]:
    try:
        body: Any = response.json()
        return body["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise ExtractionFailed("Feature extraction response has an unexpected shape") from e
