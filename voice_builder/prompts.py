"""Prompt builder: pure functions assembling system prompts from enumerated options.

Nothing here performs I/O. Every transform prompt ends with USER_CONTENT_HEADER;
the user's content itself is sent as the user message, not interpolated.
"""
from voice_builder.models import (
    Audience,
    ContentAngle,
    OutputLanguage,
    OutputLength,
    Platform,
    PlatformPersona,
    Profile,
)

USER_CONTENT_HEADER = "## 用户内容\n"

PLATFORM_NAMES: dict[Platform, str] = {
    "twitter": "Twitter",
    "xiaohongshu": "小红书",
    "wechat": "朋友圈",
    "linkedin": "LinkedIn",
}

PLATFORM_DEFAULTS: dict[Platform, dict] = {
    "twitter": {
        "tone": "犀利、观点鲜明",
        "style": "短句、hook 开头、引发讨论",
        "length": "280字符以内（中文约140字）",
        "emoji": False,
    },
    "xiaohongshu": {
        "tone": "亲切、分享感、真诚",
        "style": "口语化、分段清晰、适当emoji",
        "length": "500-800字",
        "emoji": True,
    },
    "wechat": {
        "tone": "随性、真实、像跟朋友聊天",
        "style": "轻松自然、可以有情绪",
        "length": "200-500字",
        "emoji": True,
    },
    "linkedin": {
        "tone": "专业、有深度、insights导向",
        "style": "结构化、有观点、商业视角",
        "length": "500-1000字",
        "emoji": False,
    },
}

# Language a platform tab starts with before the user toggles it.
PLATFORM_LANGUAGE_DEFAULTS: dict[Platform, OutputLanguage] = {
    "twitter": "en",
    "xiaohongshu": "zh",
    "wechat": "zh",
    "linkedin": "en",
}

_CONCISE_LIMITS: dict[Platform, str] = {
    "twitter": "100字/50词以内",
    "xiaohongshu": "200字以内",
    "wechat": "100字以内",
    "linkedin": "200字以内",
}

MAX_TOKENS: dict[Platform, dict[OutputLength, int]] = {
    "twitter": {"concise": 256, "normal": 512, "detailed": 1024},
    "xiaohongshu": {"concise": 512, "normal": 1024, "detailed": 2048},
    "wechat": {"concise": 256, "normal": 512, "detailed": 1024},
    "linkedin": {"concise": 512, "normal": 1024, "detailed": 2048},
}
_DEFAULT_MAX_TOKENS = 512

TONE_LABELS = {
    "casual": "轻松随意",
    "professional": "专业正式",
    "humorous": "幽默风趣",
}

AUDIENCE_LABELS: dict[Audience, str] = {
    "peers": "同行",
    "beginners": "小白",
    "leadership": "老板/客户",
    "friends": "朋友",
}

AUDIENCE_DESCRIPTIONS: dict[Audience, str] = {
    "peers": "专业人士、同行，可以用行业术语，聊深度话题",
    "beginners": "新手、外行人，需要用简单易懂的语言解释",
    "leadership": "领导、客户、投资人，强调价值和结果",
    "friends": "朋友、熟人，轻松随意，可以开玩笑",
}

ANGLE_LABELS: dict[ContentAngle, str] = {
    "sharing": "分享经验",
    "asking": "求助讨论",
    "opinion": "观点输出",
    "casual": "随便记录",
    "roast": "搞笑吐槽",
    "teaching": "科普教学",
    "story": "讲个故事",
}

ANGLE_DESCRIPTIONS: dict[ContentAngle, str] = {
    "sharing": '"我发现..." "最近学到..." 分享经验和心得',
    "asking": '"有人遇到过...?" "大家怎么看..." 寻求反馈和讨论',
    "opinion": '"我认为..." "其实..." 输出观点和立场',
    "casual": "轻松记录，不需要太正式，想到什么说什么",
    "roast": '"这届XX不行啊..." "离谱..." 调侃、自嘲、吐槽，带点幽默感',
    "teaching": '"一文讲清..." "其实原理很简单..." 解释概念、科普、教程向',
    "story": '"那天我..." "说个真事..." 个人经历、叙事、有画面感',
}

PERSONA_QUESTIONS: dict[Platform, list[str]] = {
    "twitter": [
        "你在 Twitter 上想给人什么印象？（比如：专业、有趣、犀利、温和...）",
        "你的目标读者是谁？他们关心什么话题？",
        "有没有你特别喜欢或讨厌的表达方式？（比如：喜欢用比喻、讨厌说教...）",
    ],
    "xiaohongshu": [
        "你在小红书上想给人什么印象？（比如：专业博主、生活分享者、学习者...）",
        "你的目标读者是谁？他们在小红书上找什么？",
        "有没有你特别喜欢或讨厌的表达方式？（比如：喜欢用emoji、讨厌太营销...）",
    ],
    "wechat": [
        "你在朋友圈想给朋友什么印象？（比如：有思考的、有趣的、低调的...）",
        "你的朋友圈主要是什么人？（同事、朋友、客户...）",
        "有没有你特别喜欢或讨厌的朋友圈风格？",
    ],
    "linkedin": [
        "你在 LinkedIn 上想建立什么样的职业形象？",
        "你的目标受众是谁？（同行、潜在客户、招聘者...）",
        "有没有你特别喜欢或讨厌的 LinkedIn 内容风格？",
    ],
}

GENERATE_PERSONA_PROMPT = """你是一个帮助用户建立社交媒体人设的助手。

## 任务
根据用户对三个问题的回答，生成一个简洁的平台人设。

## 输出格式
必须返回有效的 JSON，格式如下：
{
  "platform_bio": "一句话描述（15-30字）",
  "tone": "2-4个语气关键词，逗号分隔",
  "style_notes": "1-2个具体的风格建议（30-50字）"
}

## 要求
- platform_bio 要简洁有力，像 slogan
- tone 要具体，不要太抽象
- style_notes 要实用，能指导写作

只返回 JSON，不要有其他内容。"""

EXTRACT_POINTS_PROMPT = """你是一个帮助用户将对话内容提炼成笔记卡片的助手。

## 任务
从用户提供的对话内容中，提取：
1. 一个简洁有力的标题（10-20字）
2. 3-5 个核心要点（每个要点 15-30 字）

## 要求
- 标题要抓住核心观点，有吸引力
- 要点要简洁、具体、有价值
- 保持用户的语气和风格
- 用第一人称或陈述句

## 输出格式
必须返回有效的 JSON，格式如下：
{
  "title": "标题内容",
  "points": ["要点1", "要点2", "要点3"]
}

只返回 JSON，不要有其他内容。"""

EXTRACT_HIGHLIGHT_PROMPT = """You create simple illustration prompts in the style of Notion or Slack illustrations.

## Style Reference
Think: Notion's empty state illustrations, Slack's onboarding graphics, Linear's minimal art.
- Simple stick-figure-like characters (not realistic humans)
- 2-3 colors maximum
- Pure white or solid color background
- One clear action or emotion
- Geometric, almost childlike simplicity

## Task
Extract ONE simple scene from the user's content. Describe it in 15-25 words.

## Format
[WHO]: A simple figure (stick person, blob character, or minimal human shape)
[DOING WHAT]: One clear, simple action
[WITH WHAT]: 1-2 simple objects maximum

## Good Examples
- "A simple line-art figure sitting cross-legged with a floating lightbulb above their head"
- "A minimal blob character watering a small plant, single green sprout"
- "One stick figure standing at a fork in a path, looking at two arrows"
- "A simple outlined person holding up a giant pencil, ready to write"

## Bad Examples (NEVER do these)
- Realistic humans with facial features
- Complex backgrounds or environments
- Multiple characters interacting
- Tech imagery (screens, code, networks)
- Anything with gradients, shadows, or 3D effects

Output ONLY the simple scene description, nothing else."""

ILLUSTRATION_STYLE_SUFFIX = (
    ". Simple line art illustration, stick figure style, black outlines only, "
    "pure white background, no shading, no gradients, no shadows, geometric shapes, "
    "minimal detail, like Notion empty state illustrations, single color accent if any, "
    "extremely simple and clean"
)

# Sent as the text part when a chat message carries only an image.
IMAGE_ONLY_PROMPT = "请看这张图片，然后开始采访我关于它的想法。"


def _profile_section(profile: Profile | None) -> str:
    if profile is None:
        return """
## 用户的 Voice Profile
用户尚未设置个人资料，请在对话中自然地了解用户的表达风格。
"""
    avoid = ", ".join(profile.avoid_words) if profile.avoid_words else "无"
    interests = ", ".join(profile.interests) if profile.interests else "未设置"
    return f"""
## 用户的 Voice Profile
- 简介: {profile.bio or '未设置'}
- 语气风格: {TONE_LABELS[profile.tone]}
- 避免使用的词汇: {avoid}
- 感兴趣的领域: {interests}
"""


def build_cothink_system_prompt(profile: Profile | None) -> str:
    """System prompt for the co-think interview: ask, don't ghost-write."""
    return f"""你是用户的私人"思想采访者"，帮助他们把模糊的想法变成清晰的表达。

## 你的角色
- 你是采访者，不是代笔
- 你的目标是"挖出用户自己的想法"，不是给他们想法
- 最终输出要听起来像用户，不像 AI
{_profile_section(profile)}
## 采访原则

### 1. 提问而非陈述
- ❌ "我觉得你想说的是..."
- ✅ "你刚才提到 X，能展开说说吗？"

### 2. 追问具体
- ❌ 接受模糊的回答
- ✅ "能举个具体的例子吗？"
- ✅ "你是在什么情境下发现这个的？"

### 3. 挑战假设（温和地）
- ✅ "如果有人说 [相反观点]，你会怎么回应？"
- ✅ "这个想法有没有不适用的情况？"

### 4. 学习者视角提醒
当用户表现出完美主义倾向时（"我还没想清楚"、"可能不对"），温和提醒：
- "不完美的想法也值得分享"
- "你是在分享学习过程，不是在发表权威结论"
- "半年前的你会觉得这个有价值吗？"

### 5. 对话节奏
- 每次只问 1 个问题
- 3-5 轮后开始总结
- 如果用户表示"差不多了"，立即进入总结

## 采访阶段

### 阶段 1: 打开话题 (1-2 轮)
- "这个想法是怎么来的？"
- "为什么现在想聊这个？"

### 阶段 2: 深挖细节 (2-3 轮)
- "能举个例子吗？"
- "具体是什么让你这么想？"
- "你之前是怎么理解的？现在变了吗？"

### 阶段 3: 挑战与完善 (1-2 轮)
- "有没有例外情况？"
- "如果有人不同意，他们可能会说什么？"

### 阶段 4: 总结提炼
当对话进行了 3-5 轮，或用户表示想要总结时，用用户的 voice 输出，提供 2-3 个版本选择。
总结时要说明这是基于对话提炼的版本，让用户选择或修改。

## 重要提醒
- 每次回复只问一个问题
- 保持对话自然，像朋友聊天
- 关注用户的"为什么"，而不只是"是什么"
"""


def _length_section(platform: Platform, length: OutputLength) -> str:
    if length == "concise":
        return f"""## 长度要求：简洁 ⚠️ 严格限制
- **只输出 1 个版本**（不要多个版本）
- **字数限制：{_CONCISE_LIMITS[platform]}** ← 这是硬性要求，必须遵守
- 只保留最核心的一句话或一个观点
- 删除所有非必要的修饰词、背景说明、例子
- 像写标题或 slogan 一样精炼"""
    if length == "detailed":
        layout = "用 1/ 2/ 3/ 标注 thread" if platform == "twitter" else "分段清晰，层次分明"
        return f"""## 长度要求：详细
- 提供 2-3 个不同角度的版本，用 --- 分隔
- 充分展开，可以是系列/thread形式
- {layout}"""
    return f"""## 长度要求：正常
- 提供 2-3 个不同角度的版本，用 --- 分隔
- {PLATFORM_DEFAULTS[platform]['length']}"""


def _language_section(language: OutputLanguage) -> str:
    if language == "en":
        return """## 语言要求：英文
- 必须用英文输出
- 如果用户输入是中文，翻译并改写成地道的英文表达
- 保持意思不变，但要符合英文母语者的表达习惯"""
    if language == "zh":
        return """## 语言要求：中文
- 必须用中文输出
- 如果用户输入是英文，翻译并改写成地道的中文表达"""
    return """## 语言要求：自动
- 根据平台习惯选择语言
- Twitter/LinkedIn 默认英文，小红书/朋友圈 默认中文
- 但如果用户明显想用另一种语言，尊重用户意图"""


def build_platform_transform_prompt(
    platform: Platform,
    persona: PlatformPersona | None = None,
    length: OutputLength = "normal",
    language: OutputLanguage = "auto",
    audience: Audience = "peers",
    angle: ContentAngle = "sharing",
) -> str:
    """Assemble the transform instruction for one platform.

    A persona only contributes a section when it is custom; generic personas
    leave room for the global profile context instead.
    """
    defaults = PLATFORM_DEFAULTS[platform]
    name = PLATFORM_NAMES[platform]

    persona_section = ""
    if persona is not None and persona.is_custom:
        persona_section = f"""
## 用户人设（优先级最高）
- 定位: {persona.platform_bio}
- 语气: {persona.tone}
- 风格: {persona.style_notes}"""

    audience_section = f"""
## 目标受众：{AUDIENCE_LABELS[audience]}
- {AUDIENCE_DESCRIPTIONS[audience]}
- 根据受众调整用词、解释深度和表达方式"""

    angle_section = f"""
## 内容角度：{ANGLE_LABELS[angle]}
- {ANGLE_DESCRIPTIONS[angle]}
- 用这个角度来组织和呈现内容"""

    return f"""你是一个帮助用户将想法转换为 {name} 内容的助手。

## 平台特性
- 语气: {defaults['tone']}
- 风格: {defaults['style']}
- Emoji: {'适当使用' if defaults['emoji'] else '少用或不用'}
{persona_section}
{audience_section}
{angle_section}

{_length_section(platform, length)}

{_language_section(language)}

## 输出要求
- 直接输出内容，不需要额外解释
- 保持用户的原有观点和风格
- 符合 {name} 的阅读习惯

{USER_CONTENT_HEADER}"""


def build_profile_context(profile: Profile) -> str:
    avoid = ", ".join(profile.avoid_words) or "无"
    return f"""

## 用户基础风格
- 语气: {TONE_LABELS[profile.tone]}
- 避免词汇: {avoid}
"""


def build_transform_system_prompt(
    platform: Platform,
    profile: Profile | None = None,
    length: OutputLength = "normal",
    language: OutputLanguage = "auto",
    audience: Audience = "peers",
    angle: ContentAngle = "sharing",
) -> str:
    """Transform prompt plus the global profile context when no custom persona applies."""
    persona = profile.platform_personas.get(platform) if profile else None
    prompt = build_platform_transform_prompt(platform, persona, length, language, audience, angle)
    if profile is not None and not (persona and persona.is_custom):
        prompt += build_profile_context(profile)
    return prompt


def max_tokens_for(platform: str, length: str) -> int:
    return MAX_TOKENS.get(platform, {}).get(length, _DEFAULT_MAX_TOKENS)


def build_persona_request(platform: Platform, answers: list[str]) -> str:
    """User message for persona generation: platform name then Q/A pairs."""
    questions = PERSONA_QUESTIONS[platform]
    qa = "\n\n".join(
        f"Q: {q}\nA: {answers[i] if i < len(answers) and answers[i] else '(未回答)'}"
        for i, q in enumerate(questions)
    )
    return f"平台: {PLATFORM_NAMES[platform]}\n\n{qa}"
