"""意图分类器。

纯函数实现：按固定优先级依次匹配一张有序的“模式组”表，
第一个命中的组即为结果（基于优先级，而非置信度打分）：

    WebSearch > FactCheck > AirQuality > Directions > Timezone > LocalBusiness(显式地名) > PlainChat

WebSearch 组命中后，再由子分类器区分 LocalBusiness（商户 + 位置关键词）
与普通新闻/事实类搜索，两者对应不同的能力客户端和结果形态。
"coffee shops in Seattle" 这类“商户 + 显式地名”的说法排在表尾，
不会抢走 "directions to a pharmacy in Boston" 之类的导航请求。

误判（假阳性/假阴性）是已知限制：同时命中多个组的输入只按表序决定，
不做任何“聪明”的修正。

本模块还提供若干辅助函数：检测显式地名、判断是否需要定位，
以及从原文中剥离命令措辞得到目的地 / 时区地名 / 待核查陈述。
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence

from chat_core.domain.models import Intent


@dataclass(frozen=True)
class PatternGroup:
    """一个意图对应的正则析取组。"""

    intent: Intent
    patterns: Sequence[Pattern[str]]

    def match(self, text: str) -> Optional[str]:
        """返回第一个命中的模式串，未命中返回 None。"""

        for p in self.patterns:
            if p.search(text):
                return p.pattern
        return None


@dataclass(frozen=True)
class IntentMatch:
    intent: Intent
    pattern: Optional[str] = None


def _compile(*patterns: str) -> List[Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


# ---- 本地商户关键词 ----

_AMENITY = (
    r"(?:restaurants?|caf[eé]s?|coffee(?: shops?)?|bars?|pubs?|pizza(?: places?| spots?)?|"
    r"sushi|burgers?|tacos?|diners?|bakery|bakeries|hotels?|motels?|gas stations?|"
    r"pharmac(?:y|ies)|drugstores?|grocery stores?|supermarkets?|gyms?|banks?|atms?|"
    r"hospitals?|clinics?|dentists?|vets?|salons?|barbers?|car washes?|"
    r"places to eat|food places?|shops?|stores?)"
)

_NEARBY = (
    r"(?:near me|nearby|near here|around me|around here|close to me|close by|"
    r"in my area|in this area|in town)"
)

_LOCAL_BUSINESS_PATTERNS = _compile(
    rf"\b{_AMENITY}\b.*\b{_NEARBY}\b",
    rf"\b{_NEARBY}\b.*\b{_AMENITY}\b",
    rf"\b{_AMENITY}\b.*\bopen (?:now|late|today|tonight)\b",
)

# 地名要求首字母大写，所以不能整体 IGNORECASE；商户词用内联 (?i:...)
_LOCAL_BUSINESS_PLACE_PATTERNS = [
    re.compile(rf"(?i:\b{_AMENITY}\b).*\b(?i:in|at|near|around)\s+[A-Z]"),
]


# ---- 有序模式组表（顺序即优先级） ----

PATTERN_GROUPS: List[PatternGroup] = [
    PatternGroup(
        Intent.WEB_SEARCH,
        _compile(
            r"\b(?:search|google|look up|lookup)\b",
            r"\b(?:latest|recent|breaking|today'?s)\s+(?:news|headlines|updates)\b",
            r"\bnews\s+(?:about|on|regarding)\b",
            r"\bhappening\s+(?:now|today|right now)\b",
            r"\b(?:stock|share)\s+price\b",
            r"\bwho won\b",
        )
        + list(_LOCAL_BUSINESS_PATTERNS),
    ),
    PatternGroup(
        Intent.FACT_CHECK,
        _compile(
            r"^\s*fact[\s-]?check\b",
            r"\bfact[\s-]?check\s+(?:this|that|the claim)\b",
            r"\bis it true that\b",
            r"\bis (?:it|this|that) (?:really )?true\b",
            r"\bverify (?:that|whether|if|this|the claim)\b",
            r"\bdebunk\b",
            r"\bis (?:this|that|it) a (?:myth|hoax)\b",
        ),
    ),
    PatternGroup(
        Intent.AIR_QUALITY,
        _compile(
            r"\bair quality\b",
            r"\baqi\b",
            r"\bair pollution\b",
            r"\bpollen\b",
            r"\bsmog\b",
            r"\bpm ?(?:2\.5|10)\b",
            r"\bis the air (?:safe|clean|bad|good|healthy)\b",
        ),
    ),
    PatternGroup(
        Intent.DIRECTIONS,
        _compile(
            r"\bdirections?\s+(?:to|from|for)\b",
            r"\bhow (?:do|can|should) i (?:get|drive|walk|bike|go) (?:to|from)\b",
            r"\b(?:navigate|route|take me|get me)\s+to\b",
            r"\bhow far (?:is|to)\b",
        ),
    ),
    PatternGroup(
        Intent.TIMEZONE,
        _compile(
            r"\bwhat time is it (?:right now |now )?(?:in|at)\b",
            r"\bwhat(?:'s| is) the (?:current |local )?time (?:in|at)\b",
            r"\b(?:current|local) time (?:in|at|for)\b",
            r"\btime ?zones? (?:of|in|for)\b",
            r"\bwhat time ?zone\b",
        ),
    ),
    PatternGroup(Intent.LOCAL_BUSINESS, _LOCAL_BUSINESS_PLACE_PATTERNS),
]


# ---- 分类 ----

def classify_with_reason(text: str) -> IntentMatch:
    """分类并返回命中的模式串，便于日志排查误判。"""

    if not text or not text.strip():
        raise ValueError("utterance must be non-empty")
    for group in PATTERN_GROUPS:
        hit = group.match(text)
        if hit is None:
            continue
        if group.intent is Intent.WEB_SEARCH:
            for p in _LOCAL_BUSINESS_PATTERNS:
                if p.search(text):
                    return IntentMatch(Intent.LOCAL_BUSINESS, p.pattern)
        return IntentMatch(group.intent, hit)
    return IntentMatch(Intent.PLAIN_CHAT)


def classify_intent(text: str) -> Intent:
    """把一句用户输入映射为唯一的 Intent；无任何命中时返回 PLAIN_CHAT。"""

    return classify_with_reason(text).intent


# ---- 显式地名与定位需求 ----

# 介词不区分大小写，地名要求首字母大写（"in my area" 不算显式地名）
_PLACE_PATTERN = re.compile(
    r"\b(?i:in|at|near|around|from)\s+(?P<place>[A-Z][\w'.-]*(?:\s+[A-Z][\w'.-]*)*)"
)

LOCATION_INTENTS = frozenset({Intent.LOCAL_BUSINESS, Intent.AIR_QUALITY, Intent.DIRECTIONS})


def detect_place(text: str) -> Optional[str]:
    """检测 "in Boston" / "near San Francisco" 这类显式地名。"""

    m = _PLACE_PATTERN.search(text)
    if not m:
        return None
    return m.group("place").rstrip(".")


def needs_location(intent: Intent) -> bool:
    return intent in LOCATION_INTENTS


# ---- 命令措辞剥离 ----

_TRAILING_NOISE = re.compile(
    r"(?:\s+(?:please|right now|now|today|currently))*\s*[?.!]*\s*$",
    re.IGNORECASE,
)

_DESTINATION_PATTERNS = _compile(
    r"directions?\s+from\s+.+?\s+to\s+(?P<dest>.+)",
    r"directions?\s+(?:to|for)\s+(?P<dest>.+)",
    r"how\s+(?:do|can|should)\s+i\s+(?:get|drive|walk|bike|go)\s+to\s+(?P<dest>.+)",
    r"(?:navigate|route|take\s+me|get\s+me)\s+to\s+(?P<dest>.+)",
    r"how\s+far\s+(?:is\s+it\s+to|is|to)\s+(?P<dest>.+)",
)

_ORIGIN_PATTERN = re.compile(r"\bfrom\s+(?P<origin>.+?)(?:\s+to\s+.+)?\s*[?.!]*$", re.IGNORECASE)

_TRAILING_FROM = re.compile(r"\s+from\s+.+$", re.IGNORECASE)

_TIMEZONE_PLACE_PATTERNS = _compile(
    r"time\s?zones?\s+(?:of|in|for)\s+(?P<place>.+)",
    r"what\s+time\s?zone\s+(?:is|are)\s+(?P<place>.+?)(?:\s+in)?\s*[?.!]*$",
    r"time\s+(?:is\s+it\s+)?(?:right\s+now\s+|now\s+)?(?:in|at|for)\s+(?P<place>.+)",
)


def _clean_tail(value: str) -> str:
    return _TRAILING_NOISE.sub("", value.strip()).strip()


def extract_claim(text: str) -> str:
    """待核查陈述：原文去掉首尾空白，其余逐字保留。"""

    return text.strip()


def extract_destination(text: str) -> str:
    """目的地：去掉前导命令措辞、结尾的 "from <起点>" 子句和标点。

    例如 "How do I get to Fenway Park from Cambridge?" -> "Fenway Park"。
    无法识别措辞时退化为整句（去掉结尾标点）。
    """

    for p in _DESTINATION_PATTERNS:
        m = p.search(text)
        if m:
            dest = _TRAILING_FROM.sub("", m.group("dest"))
            return _clean_tail(dest)
    return _clean_tail(text)


def extract_origin(text: str) -> Optional[str]:
    """显式起点（"from <X>"），没有则返回 None。"""

    m = _ORIGIN_PATTERN.search(text)
    if not m:
        return None
    origin = _clean_tail(m.group("origin"))
    return origin or None


def extract_timezone_place(text: str) -> str:
    """时区查询地名：去掉 "what time is it in" 之类的前导措辞与结尾噪声。"""

    for p in _TIMEZONE_PLACE_PATTERNS:
        m = p.search(text)
        if m:
            return _clean_tail(m.group("place"))
    return _clean_tail(text)
