from enum import Enum
from typing import Dict, List, Tuple


class Platform(str, Enum):
    YAHOO = "Yahoo!ショッピング"
    RAKUTEN = "楽天市場"
    AMAZON = "Amazon Japan"


def parse_platform(raw: str) -> Platform:
    """Accept either the display value ("楽天市場") or the member name ("RAKUTEN")."""
    value = (raw or "").strip()
    for platform in Platform:
        if value == platform.value or value.upper() == platform.name:
            return platform
    raise ValueError(f"Unknown platform: {raw!r}")


class Step(str, Enum):
    PLATFORM = "PLATFORM"
    INPUT = "INPUT"
    DIAGNOSIS = "DIAGNOSIS"
    OPTIMIZATION = "OPTIMIZATION"
    IMAGE_GENERATION = "IMAGE_GENERATION"


STEP_ORDER: List[Step] = [
    Step.PLATFORM,
    Step.INPUT,
    Step.DIAGNOSIS,
    Step.OPTIMIZATION,
    Step.IMAGE_GENERATION,
]

STEP_LABELS: Dict[Step, str] = {
    Step.PLATFORM: "平台选择",
    Step.INPUT: "信息录入",
    Step.DIAGNOSIS: "深度诊断",
    Step.OPTIMIZATION: "方案生成",
    Step.IMAGE_GENERATION: "视觉生成",
}

STEP_TITLES: Dict[Step, str] = {
    Step.PLATFORM: "Step 1: 选择电商平台",
    Step.INPUT: "Step 2: 输入产品与竞品链接",
    Step.DIAGNOSIS: "Step 3: AI 深度诊断",
    Step.OPTIMIZATION: "Step 4: 制定优化方案",
    Step.IMAGE_GENERATION: "Step 5: AI 视觉生成",
}

PLATFORM_RULES: Dict[Platform, List[str]] = {
    Platform.YAHOO: [
        "标题：全角100字以内 (SEO重组)",
        "Catch Copy：全角30字以内 (半角空格分隔)",
        "说明文：HTML小标题分段 (Max 800字)",
        "图片：主图1 + 附图15-19张 (1000px)",
        "禁止：夸大/医疗暗示/他社Logo",
    ],
    Platform.RAKUTEN: [
        "标题：全角127字以内 (前40字核心)",
        "Catch Copy：全角87字以内 (移动端适配)",
        "说明文：含“手机专用”及“基本规格”段落",
        "图片：主图1 + 附图19张 (正方形)",
        "风格：重视促销感和Ranking即时性",
    ],
    Platform.AMAZON: [
        "标题：全角100字 (核心词前置)",
        "五点描述：【小标题】+ 详细场景化说明",
        "图片：主图白底 + 8张附图 (1600px)",
        "说明文：建议A+标准模块结构",
        "搜索词：半角空格分隔",
    ],
}

MIN_COMPETITOR_URLS = 1
MAX_COMPETITOR_URLS = 3
EXPECTED_PLAN_COUNT = 3

SCORE_KEYS: Tuple[str, ...] = ("keywords", "logic", "visual", "trust", "experience")
SCORE_LABELS: Dict[str, str] = {
    "keywords": "关键词",
    "logic": "逻辑性",
    "visual": "视觉感",
    "trust": "信任度",
    "experience": "体验感",
}
SCORE_MIN = 0
SCORE_MAX = 100

TRACKING_PARAM_PREFIXES: Tuple[str, ...] = ("utm_", "fbclid", "gclid", "ref_", "yclid")
TRACKING_PARAM_EXACT: Tuple[str, ...] = ("ref", "source")

ALLOWED_MIME_TYPES: Tuple[str, ...] = ("image/jpeg", "image/png", "image/webp")

EXTRACTION_FAILED_TITLE = "提取失败，请手动输入"
DEFAULT_STRATEGY = "综合优化"

# User-facing messages, one per step.
MSG_EXTRACTION_FAILED = "无法从链接提取信息，请检查链接或手动输入。"
MSG_DIAGNOSIS_FAILED = "生成诊断失败，请检查您的输入或稍后重试。"
MSG_OPTIMIZATION_FAILED = "生成优化方案失败。"
MSG_NO_VALID_PLAN = "未生成有效方案，请重新生成。"
MSG_IMAGE_FAILED = "图片 {image_id} 生成失败，请重试。"
MSG_TITLE_REQUIRED = "请先填写产品标题后再开始诊断。"
