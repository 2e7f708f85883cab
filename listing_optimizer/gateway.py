import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from .config import Settings
from .constants import (
    EXPECTED_PLAN_COUNT,
    EXTRACTION_FAILED_TITLE,
    Platform,
)
from .errors import (
    DiagnosisError,
    ExtractionError,
    ImageGenerationError,
    LLMRequestError,
    OptimizationError,
    ParseError,
)
from .llm.client import OpenRouterClient
from .llm.prompts import (
    AMAZON_CONSTRAINTS,
    DIAGNOSIS_USER_PROMPT_TEMPLATE,
    EXTRACT_USER_PROMPT_TEMPLATE,
    IMAGE_PROMPT_TEMPLATE,
    OPTIMIZATION_RESPONSE_SCHEMA,
    OPTIMIZATION_USER_PROMPT_TEMPLATE,
    RAKUTEN_CONSTRAINTS,
    SYSTEM_INSTRUCTION,
    YAHOO_CONSTRAINTS,
)
from .models import (
    DiagnosisResult,
    GeneratedImage,
    ImagePlan,
    OptimizationResult,
    ProductInput,
)
from .utils import clean_url_for_search, compress_whitespace, parse_json_response, split_data_url

logger = logging.getLogger("listing-optimizer")

PLATFORM_CONSTRAINTS: Dict[Platform, str] = {
    Platform.YAHOO: YAHOO_CONSTRAINTS,
    Platform.RAKUTEN: RAKUTEN_CONSTRAINTS,
    Platform.AMAZON: AMAZON_CONSTRAINTS,
}


def _clean_string(value: Any) -> str:
    if value is None:
        return ""
    return compress_whitespace(str(value))


class ListingGateway:
    """Blocking façade over the generation service.

    Every public method either returns a normalized model or raises the
    step-specific GatewayError subclass wrapping the underlying failure.
    """

    def __init__(
        self,
        settings: Settings,
        text_client: OpenRouterClient,
        image_client: OpenRouterClient,
    ):
        self.settings = settings
        self.text_client = text_client
        self.image_client = image_client
        self._logs_dir = Path(__file__).resolve().parent.parent / "logs"

    def extract_product_info(self, url: str) -> Dict[str, str]:
        if not url or not url.strip():
            raise ExtractionError("Product URL is empty.")
        search_url = clean_url_for_search(url.strip())
        user_prompt = EXTRACT_USER_PROMPT_TEMPLATE.format(
            search_url=search_url,
            original_url=url.strip(),
            failed_title=EXTRACTION_FAILED_TITLE,
        )
        messages = [{"role": "user", "content": user_prompt}]
        try:
            parsed = self._grounded_json("extract", messages, max_tokens=1500)
        except (LLMRequestError, ParseError) as exc:
            raise ExtractionError(f"Product extraction failed: {exc}", cause=exc) from exc
        if not isinstance(parsed, dict):
            raise ExtractionError("Extraction did not return a JSON object.")

        return {
            "title": _clean_string(parsed.get("title")),
            "price": _clean_string(parsed.get("price")),
            "description": str(parsed.get("description") or "").strip(),
        }

    def perform_diagnosis(self, platform: Platform, product: ProductInput) -> DiagnosisResult:
        user_prompt = DIAGNOSIS_USER_PROMPT_TEMPLATE.format(
            platform=platform.value,
            search_url=clean_url_for_search(product.product_url) if product.product_url else "",
            title=product.title,
            price=product.price,
            description=product.description,
            core_features=product.core_features,
            competitor_urls=", ".join(product.filled_competitor_urls()),
            competitor_info=product.competitor_info,
        )
        messages = [
            {"role": "system", "content": SYSTEM_INSTRUCTION},
            {"role": "user", "content": user_prompt},
        ]
        try:
            parsed = self._grounded_json("diagnosis", messages, max_tokens=4000)
        except (LLMRequestError, ParseError) as exc:
            raise DiagnosisError(f"Diagnosis failed: {exc}", cause=exc) from exc
        if not isinstance(parsed, dict):
            raise DiagnosisError("Diagnosis did not return a JSON object.")
        return DiagnosisResult.from_dict(parsed)

    def generate_optimizations(
        self,
        platform: Platform,
        product: ProductInput,
        diagnosis: DiagnosisResult,
    ) -> OptimizationResult:
        user_prompt = OPTIMIZATION_USER_PROMPT_TEMPLATE.format(
            diagnosis_json=json.dumps(diagnosis.to_prompt_dict(), ensure_ascii=False),
            title=product.title,
            price=product.price,
            description=product.description,
            core_features=product.core_features,
            platform=platform.value,
            plan_count=EXPECTED_PLAN_COUNT,
            platform_constraints=PLATFORM_CONSTRAINTS[platform],
        )
        messages = [
            {"role": "system", "content": SYSTEM_INSTRUCTION},
            {"role": "user", "content": user_prompt},
        ]
        response_format = {
            "type": "json_schema",
            "json_schema": {
                "name": "optimization_result",
                "strict": True,
                "schema": OPTIMIZATION_RESPONSE_SCHEMA,
            },
        }
        try:
            content, raw_response = self.text_client.chat(
                model=self.settings.text_model,
                messages=messages,
                temperature=0.7,
                max_tokens=16000,
                response_format=response_format,
            )
        except LLMRequestError as exc:
            raise OptimizationError(f"Optimization failed: {exc}", cause=exc) from exc
        self._log_raw("optimization_content", content)
        self._log_raw("optimization_raw_response", raw_response)

        try:
            parsed = parse_json_response(content)
        except ParseError as exc:
            self._log_raw("optimization_parse_error", {"error": str(exc), "content": content})
            raise OptimizationError(f"Optimization output is not JSON: {exc}", cause=exc) from exc
        return OptimizationResult.from_dict(parsed)

    def generate_listing_image(
        self,
        reference_image: str,
        image_plan: ImagePlan,
        product_description: str,
    ) -> GeneratedImage:
        if not reference_image:
            raise ImageGenerationError("Reference image is required.")
        prompt = IMAGE_PROMPT_TEMPLATE.format(
            image_type=image_plan.type,
            composition=image_plan.composition,
            tips=image_plan.tips,
            main_copy=image_plan.main_copy,
            sub_copy=image_plan.sub_copy,
            product_description=product_description,
        )
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "image_url", "image_url": {"url": reference_image}},
                    {"type": "text", "text": prompt},
                ],
            }
        ]
        try:
            image_url, raw_response = self.image_client.generate_image(
                model=self.settings.image_model,
                messages=messages,
                aspect_ratio="1:1",
                timeout=self.settings.image_request_timeout,
            )
            mime_type, data = split_data_url(image_url)
        except (LLMRequestError, ValueError) as exc:
            raise ImageGenerationError(
                f"Image {image_plan.id} generation failed: {exc}", cause=exc
            ) from exc
        if not data:
            raise ImageGenerationError(f"Image {image_plan.id} generation returned no data.")
        self._log_raw(
            "image_response",
            {"image_id": image_plan.id, "mime_type": mime_type, "bytes": len(data), "id": raw_response.get("id")},
        )
        return GeneratedImage(image_id=image_plan.id, mime_type=mime_type, data=data)

    def _grounded_json(self, name: str, messages: List[Dict[str, Any]], max_tokens: int) -> Any:
        # Web search and a strict response schema cannot be combined, so
        # grounded calls return free text that has to be normalized.
        model = self.settings.text_model_online or self.settings.text_model
        content, raw_response = self.text_client.chat(
            model=model,
            messages=messages,
            temperature=0.2,
            max_tokens=max_tokens,
        )
        self._log_raw(f"{name}_content", content)
        self._log_raw(f"{name}_raw_response", raw_response)
        try:
            return parse_json_response(content)
        except ParseError as exc:
            self._log_raw(f"{name}_parse_error", {"error": str(exc), "content": exc.raw_text})
            raise

    def _log_raw(self, name: str, payload: Any) -> None:
        if not self.settings.log_llm_raw:
            return
        try:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S_%f")
            path = self._logs_dir / f"{name}_{timestamp}.log"
            with path.open("w", encoding="utf-8") as f:
                if isinstance(payload, str):
                    f.write(payload)
                else:
                    json.dump(payload, f, ensure_ascii=False, indent=2, default=str)
        except OSError as exc:
            # Raw dumps are diagnostics only and must not break the flow.
            logger.warning("Failed to write raw LLM log %s: %s", name, exc)
