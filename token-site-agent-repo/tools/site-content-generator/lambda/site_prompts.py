import os
import json
import logging
from typing import Any, Dict, List

logger = logging.getLogger()

# -----------------------------
# Vibes / schema variants
# -----------------------------
VIBES = ("degen", "cute", "ai", "frog", "simple")
DEFAULT_VIBE = "degen"

THEMES = ("frog", "ai", "cute", "degen", "simple")

VARIANT_THEMED = "themed"
VARIANT_CLASSIC = "classic"
DEFAULT_VARIANT = VARIANT_THEMED

# Expected list lengths per key. Advisory only: used for prompt text and drift logging.
LIST_SHAPES = {
    "features": (3, 3),
    "lore_paragraphs": (2, 3),
    "tokenomics_points": (3, 3),
    "roadmap_phases": (3, 3),
    "faq": (4, 4),
}

CLASSIC_KEYS = [
    "hero_title",
    "hero_subtitle",
    "tagline",
    "features",
    "lore_paragraphs",
    "tokenomics_points",
    "roadmap_phases",
    "faq",
]
THEMED_KEYS = ["theme"] + CLASSIC_KEYS


# -----------------------------
# System prompts
# -----------------------------
_PROMPT_INTRO = """You are a Solana degen copywriter and UX writer for meme coin websites.

You will be given:
- project_name: name of the coin
- ticker: token ticker (e.g. "PUMP")
- vibe: tone style (e.g. "degen", "cute", "frog", "ai", "simple")
- optional_note: any extra info from the user

Return ONLY a valid JSON object in this format, with no extra text:
"""

_SCHEMA_BODY = """  "hero_title": "",
  "hero_subtitle": "",
  "tagline": "",
  "features": [
    { "title": "", "description": "" },
    { "title": "", "description": "" },
    { "title": "", "description": "" }
  ],
  "lore_paragraphs": [
    "",
    "",
    ""
  ],
  "tokenomics_points": [
    "",
    "",
    ""
  ],
  "roadmap_phases": [
    { "title": "", "description": "" },
    { "title": "", "description": "" },
    { "title": "", "description": "" }
  ],
  "faq": [
    { "question": "", "answer": "" },
    { "question": "", "answer": "" },
    { "question": "", "answer": "" },
    { "question": "", "answer": "" }
  ]"""

_THEME_LINE = '  "theme": "frog | ai | cute | degen | simple",\n'

_RULES = """Rules:
- hero_title: short, bold, 3–7 words.
- hero_subtitle: 1 short sentence that explains the coin or brand.
- tagline: under 12 words, feels like a slogan.
- features: talk about utility, community, AI aspect, Pump.fun readiness, etc.
- lore_paragraphs: 2–3 fun story paragraphs.
- tokenomics_points: mention things like 1B supply, 3% dev, 97% community, 0% tax if relevant.
- roadmap_phases: Phase 1 (launch), Phase 2 (community + memes), Phase 3 (DEX / integrations).
- faq: common degen questions like “Is this a rug?”, “What does {ticker} actually do?”, “How does Pump AI help?”, “Can the buy link change later?”
"""

_THEME_RULE = (
    "- theme: exactly one of frog, ai, cute, degen, simple. "
    "Pick the visual theme that best fits the vibe and the project name.\n"
)

_TONE = """
Tone:
- vibe = "degen": more degen slang but still readable.
- vibe = "cute": playful and light.
- vibe = "ai": futuristic and techy.
- vibe = "frog": pepe / frog meme style.
- vibe = "simple": straightforward, clean.

Output must be STRICT JSON.
No markdown, no comments, no additional text outside the JSON object.
"""


def _build_system_prompt(with_theme: bool) -> str:
    schema = "{\n" + (_THEME_LINE if with_theme else "") + _SCHEMA_BODY + "\n}\n"
    rules = _RULES + (_THEME_RULE if with_theme else "")
    return _PROMPT_INTRO + "\n" + schema + "\n" + rules + _TONE


SYSTEM_PROMPTS = {
    VARIANT_THEMED: _build_system_prompt(with_theme=True),
    VARIANT_CLASSIC: _build_system_prompt(with_theme=False),
}


def resolve_variant(name: str) -> str:
    v = (name or "").strip().lower()
    if not v:
        return DEFAULT_VARIANT
    if v not in SYSTEM_PROMPTS:
        logger.warning("Unknown SITE_SCHEMA_VARIANT=%r, falling back to %s", name, DEFAULT_VARIANT)
        return DEFAULT_VARIANT
    return v


SCHEMA_VARIANT = resolve_variant(os.getenv("SITE_SCHEMA_VARIANT", DEFAULT_VARIANT))


def cleans_completion(variant: str) -> bool:
    """The classic variant parses the trimmed completion as-is (no fence/brace cleanup)."""
    return variant != VARIANT_CLASSIC


def normalize_vibe(vibe: Any) -> str:
    v = str(vibe or "").strip().lower()
    return v if v in VIBES else DEFAULT_VIBE


# -----------------------------
# Message builders
# -----------------------------
def build_user_message(request: Dict[str, str]) -> str:
    return json.dumps({
        "project_name": request["project_name"],
        "ticker": request["ticker"],
        "vibe": request.get("vibe") or DEFAULT_VIBE,
        "optional_note": request.get("optional_note") or "",
    })


def build_messages(request: Dict[str, str], variant: str = SCHEMA_VARIANT) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPTS[variant]},
        {"role": "user", "content": build_user_message(request)},
    ]


# -----------------------------
# Shape drift (advisory, logged only)
# -----------------------------
def _pair_list_ok(items: list, keys: tuple) -> bool:
    return all(isinstance(it, dict) and all(k in it for k in keys) for it in items)


def describe_shape_drift(content: Dict[str, Any], variant: str = SCHEMA_VARIANT) -> List[str]:
    """
    Compare a parsed completion against the requested schema and describe deviations.

    Nothing here rejects a completion; callers only log the notes.
    """
    notes: List[str] = []
    expected = THEMED_KEYS if variant == VARIANT_THEMED else CLASSIC_KEYS

    for key in expected:
        if key not in content:
            notes.append(f"missing key: {key}")

    theme = content.get("theme")
    if variant == VARIANT_THEMED and theme is not None and theme not in THEMES:
        notes.append(f"theme {theme!r} not in {list(THEMES)}")

    for key, (lo, hi) in LIST_SHAPES.items():
        val = content.get(key)
        if val is None:
            continue
        if not isinstance(val, list):
            notes.append(f"{key} should be a list, got {type(val).__name__}")
            continue
        if not lo <= len(val) <= hi:
            want = str(lo) if lo == hi else f"{lo}-{hi}"
            notes.append(f"{key} has {len(val)} items, expected {want}")

    if isinstance(content.get("features"), list) and not _pair_list_ok(content["features"], ("title", "description")):
        notes.append("features items should have title and description")
    if isinstance(content.get("roadmap_phases"), list) and not _pair_list_ok(content["roadmap_phases"], ("title", "description")):
        notes.append("roadmap_phases items should have title and description")
    if isinstance(content.get("faq"), list) and not _pair_list_ok(content["faq"], ("question", "answer")):
        notes.append("faq items should have question and answer")

    return notes
