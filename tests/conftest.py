import os
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("OPENROUTER_API_KEY", "test_key")
os.environ.setdefault("TEXT_MODEL", "test/text-model")
os.environ.setdefault("IMAGE_MODEL", "test/image-model")
os.environ["LOG_REQUESTS"] = "false"
os.environ["LOG_LLM_RAW"] = "false"

from listing_optimizer.errors import DiagnosisError, ImageGenerationError, OptimizationError  # noqa: E402
from listing_optimizer.models import (  # noqa: E402
    DiagnosisResult,
    GeneratedImage,
    OptimizationResult,
)

DIAGNOSIS_PAYLOAD: Dict[str, Any] = {
    "competitorAnalysis": [
        {"name": "SoundPeats Air4", "pros": ["价格低", "评价多"], "cons": ["续航短"]},
        {"name": "Anker Liberty 4", "pros": ["降噪强"], "cons": ["价格高", "主图杂乱"]},
    ],
    "selfAnalysis": {
        "pros": ["低延迟"],
        "cons": ["标题关键词不足"],
        "suggestions": ["前置核心关键词", "补充使用场景图"],
    },
}


def _plan(letter: str, image_count: int) -> Dict[str, Any]:
    return {
        "name": f"方案{letter}",
        "scores": {"keywords": 90, "logic": 80, "visual": 70, "trust": 85, "experience": 75},
        "title": f"ワイヤレスイヤホン X1 {letter}",
        "titleAnalysis": "核心词前置",
        "catchCopy": "【長時間再生】最大30時間",
        "description": "<h3>特長</h3><p>高音質</p>",
        "images": [
            {
                "id": idx,
                "type": "主图" if idx == 1 else "场景图",
                "composition": "白底正面",
                "mainCopy": "高音質",
                "subCopy": "30時間再生",
                "tips": "柔光",
            }
            for idx in range(1, image_count + 1)
        ],
        "qa": "Q: 防水ですか？ A: IPX5です。",
        "strategy": "转化优先",
    }


OPTIMIZATION_PAYLOAD: Dict[str, Any] = {"plans": [_plan("A", 3), _plan("B", 2), _plan("C", 9)]}

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


class FakeGateway:
    """Stands in for ListingGateway. Calls are recorded; failures are opt-in."""

    def __init__(self):
        self.calls: List[str] = []
        self.extraction: Dict[str, str] = {"title": "抽出タイトル", "price": "¥3,980", "description": ""}
        self.diagnosis = DiagnosisResult.from_dict(DIAGNOSIS_PAYLOAD)
        self.optimization = OptimizationResult.from_dict(OPTIMIZATION_PAYLOAD)
        self.fail: Dict[str, bool] = {}
        self.failing_images: set = set()
        self.gates: Dict[Any, threading.Event] = {}

    def _wait(self, key: Any) -> None:
        gate = self.gates.get(key)
        if gate is not None:
            assert gate.wait(timeout=5), f"gate {key!r} was never released"

    def extract_product_info(self, url: str) -> Dict[str, str]:
        self.calls.append("extract")
        self._wait("extract")
        if self.fail.get("extract"):
            raise RuntimeError("extraction blew up")
        return dict(self.extraction)

    def perform_diagnosis(self, platform, product) -> DiagnosisResult:
        self.calls.append("diagnosis")
        self._wait("diagnosis")
        if self.fail.get("diagnosis"):
            raise DiagnosisError("quota exceeded")
        return self.diagnosis

    def generate_optimizations(self, platform, product, diagnosis) -> OptimizationResult:
        self.calls.append("optimization")
        self._wait("optimization")
        if self.fail.get("optimization"):
            raise OptimizationError("network down")
        return self.optimization

    def generate_listing_image(self, reference_image: str, image_plan, description: str) -> GeneratedImage:
        self.calls.append(f"image:{image_plan.id}")
        self._wait(("image", image_plan.id))
        if image_plan.id in self.failing_images:
            raise ImageGenerationError(f"image {image_plan.id} failed")
        return GeneratedImage(image_id=image_plan.id, mime_type="image/png", data=PNG_BYTES)


@pytest.fixture()
def fake_gateway() -> FakeGateway:
    return FakeGateway()


class StubClient:
    """Replaces OpenRouterClient inside ListingGateway tests."""

    def __init__(self, content: str = "", image_url: Optional[str] = None, error: Optional[Exception] = None):
        self.content = content
        self.image_url = image_url
        self.error = error
        self.requests: List[Dict[str, Any]] = []

    def chat(self, model, messages, temperature=0.2, max_tokens=1024, response_format=None):
        self.requests.append(
            {"model": model, "messages": messages, "response_format": response_format}
        )
        if self.error is not None:
            raise self.error
        return self.content, {"id": "gen-1"}

    def generate_image(self, model, messages, aspect_ratio="1:1", timeout=None):
        self.requests.append({"model": model, "messages": messages, "aspect_ratio": aspect_ratio})
        if self.error is not None:
            raise self.error
        return self.image_url, {"id": "gen-2"}
