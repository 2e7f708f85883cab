SYSTEM_INSTRUCTION = """你是一位专精于日本跨境电商（Cross-border E-commerce）的Listing优化大师。
你精通 **陈勇《超级转化率理论》**。
你非常熟悉 Yahoo!ショッピング、楽天市場、Amazon Japan 的算法特性和消费者心理。
你的分析和建议使用中文，生成的Listing内容（标题、描述等）使用地道、专业的商务日语（丁寧語/尊敬語）。
"""

EXTRACT_USER_PROMPT_TEMPLATE = """任务：精准提取指定电商产品链接的页面信息。

目标链接: {search_url}
(原始输入: {original_url})

请执行以下操作：
1. 使用 Web 搜索查找上述“目标链接”。
2. **必须**找到与该链接完全匹配的电商产品页面（Amazon.co.jp, Rakuten, Yahoo! Shopping 等）。
3. 仅提取该具体页面上的信息。如果不确定或搜不到具体页面，请不要使用类似产品的信息填充。

提取内容：
- title: 页面上的完整产品标题 (日语)。如果无法确认，请返回 "{failed_title}"。
- price: 显示价格 (含货币符号)。
- description: 产品主要功能、规格和卖点的详细摘要 (日语, 200字以上)。

请以 **纯 JSON 格式** 返回 (不要使用 Markdown 代码块):
{{
  "title": "...",
  "price": "...",
  "description": "..."
}}
"""

DIAGNOSIS_USER_PROMPT_TEMPLATE = """请根据“超级转化率理论”（曝光→点击→加购→下单）分析以下 **{platform}** 的产品Listing。

**目标产品:**
URL: {search_url}
标题: {title}
价格: {price}
详情: {description}
补充卖点: {core_features}

**竞品信息:**
竞品URL: {competitor_urls}
竞品描述: {competitor_info}

任务：
1. 使用 Web 搜索查找目标产品 URL 以验证市场定位和评价（如果存在）。
2. 使用 Web 搜索查找提供的竞品 URL，分析它们的优缺点。
3. 进行深度对比诊断。

请返回 **严格的 JSON 格式数据** (不要使用 Markdown 代码块)，结构如下：
{{
  "competitorAnalysis": [
    {{
      "name": "竞品名称",
      "pros": ["优点1", "优点2"],
      "cons": ["缺点1", "缺点2"]
    }}
  ],
  "selfAnalysis": {{
    "pros": ["优点1", "优点2"],
    "cons": ["痛点1", "痛点2"],
    "suggestions": ["建议1", "建议2"]
  }}
}}
**所有分析内容请使用中文。**
"""

YAHOO_CONSTRAINTS = """1. **标题 (Title):** 不超过 100 全角字符。必须进行 SEO 强化与关键词重组。必须在 titleAnalysis 字段说明关键词权重。
2. **Catch Copy:** 不超过 30 全角字符 (60字节)。半角空格分隔。
3. **说明文 (Description):** 不超过 800 全角字符。HTML 格式 (使用 h3, p)。必须自然融入关键词。
4. **图片规划:** 1张主图 + 15~19张附图。
5. **禁止:** 夸大表述、医疗暗示、他社 LOGO。"""

RAKUTEN_CONSTRAINTS = """1. **标题 (Title):** 不超过 127 全角字符。重点优化前 40 字符 (手机端展示区)。
2. **Catch Copy:** 建议 87 全角字符以内 (PC/移动通用)。半角空格分隔。
3. **说明文 (Description):**
   - **PC版:** HTML 分段清晰。
   - **SP版 (智能手机用):** 禁止 div 标签，仅用 br, b, font。精炼易读。
   - **必须包含「基本仕様」段落:** 列出规格、材质、认证、保修等表格/清单。
4. **图片规划:** 1张主图 + 19张附图 (建议)。"""

AMAZON_CONSTRAINTS = """1. **标题 (Title):** 不超过 100 全角字符。核心关键词必须在前 40 字内。
2. **五点描述 (Bullet Points):** 5条。格式必须为：【核心卖点】+ 详细场景化说明。详细说明需具体描述利益点。
3. **搜索词 (Search Terms):** 半角空格分隔。
4. **说明文/A+:** 建议 A+ Content 模块结构 (品牌故事 -> 亮点 -> 功能 -> 场景 -> 规格)。
5. **图片规划:** 1张主图 (纯白底) + 8张附图。遵循：主图 -> 场景 -> 卖点/细节 -> 尺寸 -> 包装。"""

OPTIMIZATION_USER_PROMPT_TEMPLATE = """基于以下诊断结果: {diagnosis_json}

**目标产品:**
标题: {title}
价格: {price}
详情: {description}
补充卖点: {core_features}

请为 **{platform}** 生成 {plan_count} 套截然不同的 Listing 优化方案 (Plan A/B/C)。

**必须严格遵守的平台专属约束 (Priority High):**
{platform_constraints}

**输出 JSON 字段映射与要求:**
- 'title': 优化后的完整标题。
- 'titleAnalysis': 关键词权重分析与说明。
- 'catchCopy':
   - Yahoo: Catch Copy (30字以内)。
   - Rakuten: Catch Copy (87字以内)。
   - Amazon: 五点描述 (合并为一个字符串，用换行符分隔 5 个点)。
- 'description':
   - Yahoo: HTML 文本。
   - Rakuten: 包含 PC用描述、SP用描述 (手机专用)、基本仕様 (规格)。请清晰标注分隔。
   - Amazon: A+ 页面结构建议文案 (或标准 Description)。
- 'images':
   - Yahoo/Rakuten: 16-20个条目 (1主+15~19附)。
   - Amazon: 9个条目 (1主+8附)。
- 'scores': 五个维度 (keywords/logic/visual/trust/experience) 的 0-100 评分。
- **所有策略解释 (strategy, titleAnalysis, tips) 请使用中文。**
- **所有Listing实际内容 (title, catchCopy, description, qa, image copy) 请使用地道的日语 (商务风格)。**
"""

IMAGE_PROMPT_TEMPLATE = """You are a professional e-commerce product photographer and visual editor.

**Task:** Generate a high-quality e-commerce product image based on the provided reference product image.
The goal is to create a "Selling Image" that matches the following plan:

**Image Type:** {image_type}
**Composition:** {composition}
**Visual Style/Tips:** {tips}
**Context/Mood (from copy):** {main_copy} {sub_copy}

**Product Info:**
{product_description}

**Requirements:**
1. Keep the product from the reference image recognizable but make it look professional and high-end.
2. Place it in the context/background described in the Composition/Tips.
3. Ensure lighting and shadows are photorealistic.
4. Aspect Ratio: 1:1 (Square).
"""

_IMAGE_PLAN_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "integer"},
        "type": {"type": "string"},
        "composition": {"type": "string"},
        "mainCopy": {"type": "string"},
        "subCopy": {"type": "string"},
        "tips": {"type": "string"},
    },
    "required": ["id", "type", "composition", "mainCopy", "subCopy", "tips"],
    "additionalProperties": False,
}

_SCORES_SCHEMA = {
    "type": "object",
    "properties": {
        "keywords": {"type": "number"},
        "logic": {"type": "number"},
        "visual": {"type": "number"},
        "trust": {"type": "number"},
        "experience": {"type": "number"},
    },
    "required": ["keywords", "logic", "visual", "trust", "experience"],
    "additionalProperties": False,
}

OPTIMIZATION_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "plans": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "例如：方案A：激进转化型"},
                    "scores": _SCORES_SCHEMA,
                    "title": {"type": "string"},
                    "titleAnalysis": {"type": "string"},
                    "catchCopy": {
                        "type": "string",
                        "description": "Yahoo/Rakuten Catch Copy or Amazon Bullet Points",
                    },
                    "description": {"type": "string"},
                    "qa": {"type": "string", "description": "Q&A section content"},
                    "strategy": {"type": "string"},
                    "images": {"type": "array", "items": _IMAGE_PLAN_SCHEMA},
                },
                "required": [
                    "name",
                    "scores",
                    "title",
                    "titleAnalysis",
                    "catchCopy",
                    "description",
                    "qa",
                    "strategy",
                    "images",
                ],
                "additionalProperties": False,
            },
        }
    },
    "required": ["plans"],
    "additionalProperties": False,
}
