from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .constants import (
    MAX_COMPETITOR_URLS,
    MIN_COMPETITOR_URLS,
    SCORE_KEYS,
    SCORE_MAX,
    SCORE_MIN,
)
from .utils import image_bytes_to_data_url


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value).strip()


def _as_str_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, (list, tuple)):
        return []
    return [_as_str(item) for item in value if _as_str(item)]


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_score(value: Any) -> int:
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return SCORE_MIN
    return max(SCORE_MIN, min(SCORE_MAX, score))


def clamp_competitor_urls(urls: Any) -> Tuple[str, ...]:
    """Keep between one and three competitor URL slots."""
    if isinstance(urls, str):
        urls = [urls]
    if not isinstance(urls, (list, tuple)):
        urls = []
    cleaned = tuple(_as_str(url) for url in urls)[:MAX_COMPETITOR_URLS]
    if len(cleaned) < MIN_COMPETITOR_URLS:
        cleaned = cleaned + ("",) * (MIN_COMPETITOR_URLS - len(cleaned))
    return cleaned


@dataclass(frozen=True)
class ProductInput:
    product_url: str = ""
    title: str = ""
    price: str = ""
    description: str = ""
    competitor_urls: Tuple[str, ...] = ("",)
    competitor_info: str = ""
    core_features: str = ""

    def filled_competitor_urls(self) -> List[str]:
        return [url.strip() for url in self.competitor_urls if url.strip()]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["competitor_urls"] = list(self.competitor_urls)
        return data


@dataclass(frozen=True)
class CompetitorAnalysis:
    name: str
    pros: List[str] = field(default_factory=list)
    cons: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SelfAnalysis:
    pros: List[str] = field(default_factory=list)
    cons: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DiagnosisResult:
    competitor_analysis: List[CompetitorAnalysis] = field(default_factory=list)
    self_analysis: SelfAnalysis = field(default_factory=SelfAnalysis)

    @classmethod
    def from_dict(cls, raw: Any) -> "DiagnosisResult":
        data = _as_dict(raw)
        competitors: List[CompetitorAnalysis] = []
        items = data.get("competitorAnalysis")
        if isinstance(items, list):
            for idx, item in enumerate(items, start=1):
                if not isinstance(item, dict):
                    continue
                competitors.append(
                    CompetitorAnalysis(
                        name=_as_str(item.get("name")) or f"竞品 {idx}",
                        pros=_as_str_list(item.get("pros")),
                        cons=_as_str_list(item.get("cons")),
                    )
                )
        own = _as_dict(data.get("selfAnalysis"))
        return cls(
            competitor_analysis=competitors,
            self_analysis=SelfAnalysis(
                pros=_as_str_list(own.get("pros")),
                cons=_as_str_list(own.get("cons")),
                suggestions=_as_str_list(own.get("suggestions")),
            ),
        )

    def to_prompt_dict(self) -> Dict[str, Any]:
        return {
            "competitorAnalysis": [
                {"name": item.name, "pros": item.pros, "cons": item.cons}
                for item in self.competitor_analysis
            ],
            "selfAnalysis": {
                "pros": self.self_analysis.pros,
                "cons": self.self_analysis.cons,
                "suggestions": self.self_analysis.suggestions,
            },
        }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PlanScores:
    keywords: int = 0
    logic: int = 0
    visual: int = 0
    trust: int = 0
    experience: int = 0

    @classmethod
    def from_dict(cls, raw: Any) -> "PlanScores":
        data = _as_dict(raw)
        return cls(**{key: _as_score(data.get(key)) for key in SCORE_KEYS})


@dataclass(frozen=True)
class ImagePlan:
    id: int
    type: str = ""
    composition: str = ""
    main_copy: str = ""
    sub_copy: str = ""
    tips: str = ""


def _image_plans_from_list(raw: Any) -> List[ImagePlan]:
    if not isinstance(raw, list):
        return []
    plans: List[ImagePlan] = []
    seen = set()
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            image_id = int(item.get("id"))
        except (TypeError, ValueError):
            image_id = 0
        # Slots are keyed by id, so missing or repeated ids get the next free one.
        if image_id <= 0 or image_id in seen:
            image_id = max(seen, default=0) + 1
        seen.add(image_id)
        plans.append(
            ImagePlan(
                id=image_id,
                type=_as_str(item.get("type")),
                composition=_as_str(item.get("composition")),
                main_copy=_as_str(item.get("mainCopy")),
                sub_copy=_as_str(item.get("subCopy")),
                tips=_as_str(item.get("tips")),
            )
        )
    return plans


@dataclass(frozen=True)
class OptimizationPlan:
    name: str
    scores: PlanScores = field(default_factory=PlanScores)
    title: str = ""
    title_analysis: str = ""
    catch_copy: str = ""
    description: str = ""
    images: List[ImagePlan] = field(default_factory=list)
    qa: str = ""
    strategy: str = ""

    @classmethod
    def from_dict(cls, raw: Any, position: int = 1) -> "OptimizationPlan":
        data = _as_dict(raw)
        return cls(
            name=_as_str(data.get("name")) or f"方案 {position}",
            scores=PlanScores.from_dict(data.get("scores")),
            title=_as_str(data.get("title")),
            title_analysis=_as_str(data.get("titleAnalysis")),
            catch_copy=_as_str(data.get("catchCopy")),
            description=_as_str(data.get("description")),
            images=_image_plans_from_list(data.get("images")),
            qa=_as_str(data.get("qa")),
            strategy=_as_str(data.get("strategy")),
        )

    def find_image(self, image_id: int) -> Optional[ImagePlan]:
        for image in self.images:
            if image.id == image_id:
                return image
        return None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class OptimizationResult:
    plans: List[OptimizationPlan] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any) -> "OptimizationResult":
        items = _as_dict(raw).get("plans")
        if not isinstance(items, list):
            return cls(plans=[])
        plans = [
            OptimizationPlan.from_dict(item, position=idx)
            for idx, item in enumerate(items, start=1)
            if isinstance(item, dict)
        ]
        return cls(plans=plans)

    @property
    def is_empty(self) -> bool:
        return not self.plans


@dataclass(frozen=True)
class GeneratedImage:
    image_id: int
    mime_type: str
    data: bytes

    @property
    def data_url(self) -> str:
        return image_bytes_to_data_url(self.data, self.mime_type)
