# src/services/recipe_text.py
"""Free-text helpers: durations, servings and ingredient/instruction sections."""
from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Optional

_ISO_DURATION_RE = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$",
    re.IGNORECASE,
)
_RANGE_RE = re.compile(r"(\d+(?:[.,]\d+)?)\s*(?:-|–|to|a)\s*\d+(?:[.,]\d+)?", re.IGNORECASE)
_DURATION_PART_RE = re.compile(
    r"(\d+(?:[.,]\d+)?)\s*(days?|d\b|hours?|hrs?|h\b|horas?|minutes?|mins?|m\b|minutos?)",
    re.IGNORECASE,
)
_INT_RE = re.compile(r"\d+")

_UNIT_MINUTES = {"d": 1440, "h": 60, "m": 1}

_INGREDIENT_HEADERS = ("ingredients", "ingredient list", "you will need", "you'll need", "ingredientes")
_INSTRUCTION_HEADERS = (
    "instructions", "directions", "method", "steps", "preparation", "how to make",
    "modo de preparo", "preparo",
)
_BULLET_RE = re.compile(r"^\s*(?:[-*•·▪►✓✔]|\d+[.)](?!\d)|step\s*\d+[:.)]?|passo\s*\d+[:.)]?)\s*", re.IGNORECASE)
_NUMBERED_RE = re.compile(r"^\s*(?:\d+[.)](?!\d)|step\s*\d+|passo\s*\d+)", re.IGNORECASE)
_QUANTITY_RE = re.compile(
    r"^\s*(?:[-*•]\s*)?(?:\d+(?:[.,/]\d+)?|[½¼¾⅓⅔⅛]|a\s|an\s|one\s|two\s|three\s|pinch|dash|handful)",
    re.IGNORECASE,
)
_COOK_TIME_RE = re.compile(
    r"(?:total|cook(?:ing)?|prep)\s*time\s*[:\-]?\s*([^\n]+)", re.IGNORECASE
)
_SERVINGS_RE = re.compile(r"(?:serves|servings|yield|makes|rendimento)\s*[:\-]?\s*([^\n]+)", re.IGNORECASE)
_HASHTAG_RE = re.compile(r"#(\w+)")


def clean_string(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def parse_duration_minutes(value: Any) -> Optional[int]:
    """
    Convert free-text or ISO-8601 durations to whole minutes.

    "4 hours" -> 240, "1 hr 30 mins" -> 90, "PT1H15M" -> 75, "30-40 min" -> 30.
    Bare numbers are taken as minutes.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else None
    text = clean_string(value)
    if not text:
        return None

    iso = _ISO_DURATION_RE.match(text)
    if iso and any(iso.groupdict().values()):
        parts = {k: float(v) for k, v in iso.groupdict().items() if v}
        total = (
            parts.get("days", 0) * 1440
            + parts.get("hours", 0) * 60
            + parts.get("minutes", 0)
            + parts.get("seconds", 0) / 60
        )
        return int(round(total)) or None

    text = _RANGE_RE.sub(r"\1", text)
    total = 0.0
    for amount, unit in _DURATION_PART_RE.findall(text):
        total += float(amount.replace(",", ".")) * _UNIT_MINUTES[unit[0].lower()]
    if total:
        return int(round(total))

    bare = _INT_RE.search(text)
    if bare and text.strip().isdigit():
        return int(bare.group()) or None
    return None


def parse_servings(value: Any) -> Optional[int]:
    """First positive integer in value: "Serves 4-6" -> 4."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else None
    if isinstance(value, (list, tuple)):
        for item in value:
            parsed = parse_servings(item)
            if parsed:
                return parsed
        return None
    text = clean_string(value)
    if not text:
        return None
    m = _INT_RE.search(text)
    if not m:
        return None
    number = int(m.group())
    return number if number > 0 else None


def _normalize_header(line: str) -> str:
    t = unicodedata.normalize("NFKD", line).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z' ]+", "", t.lower()).strip()


def _strip_bullet(line: str) -> str:
    return _BULLET_RE.sub("", line, count=1).strip()


@dataclass
class ParsedRecipeText:
    title: Optional[str] = None
    ingredients: list[str] = field(default_factory=list)
    instructions: list[str] = field(default_factory=list)
    cooking_time: Optional[str] = None
    servings: Optional[str] = None
    tags: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.ingredients and not self.instructions


def parse_recipe_text(text: Optional[str], fallback_title: Optional[str] = None) -> ParsedRecipeText:
    """
    Split a caption, note or email body into ingredients and instructions.

    Section headers ("Ingredients:", "Method") drive the split when present;
    otherwise quantity-led lines become ingredients and numbered lines
    become instructions.
    """
    result = ParsedRecipeText(title=clean_string(fallback_title))
    if not text:
        return result

    result.tags = list(dict.fromkeys(_HASHTAG_RE.findall(text)))
    cook = _COOK_TIME_RE.search(text)
    if cook:
        result.cooking_time = cook.group(1).strip()
    serves = _SERVINGS_RE.search(text)
    if serves:
        result.servings = serves.group(1).strip()

    section: Optional[str] = None
    saw_header = False
    loose: list[str] = []

    for raw in text.splitlines():
        line = re.sub(r"^#+\s+", "", raw.strip())
        if not line:
            continue
        header = _normalize_header(line.rstrip(":"))
        if header in _INGREDIENT_HEADERS:
            section, saw_header = "ingredients", True
            continue
        if header in _INSTRUCTION_HEADERS:
            section, saw_header = "instructions", True
            continue
        if (_COOK_TIME_RE.match(line) or _SERVINGS_RE.match(line)) and _INT_RE.search(line):
            continue

        if section == "ingredients":
            result.ingredients.append(_strip_bullet(line))
        elif section == "instructions":
            result.instructions.append(_strip_bullet(line))
        else:
            if result.title is None and not _HASHTAG_RE.fullmatch(line):
                result.title = line[:200]
                continue
            loose.append(line)

    if not saw_header:
        for line in loose:
            if _NUMBERED_RE.match(line):
                result.instructions.append(_strip_bullet(line))
            elif _QUANTITY_RE.match(line):
                result.ingredients.append(_strip_bullet(line))

    result.ingredients = [i for i in result.ingredients if i and not _HASHTAG_RE.fullmatch(i)]
    result.instructions = [i for i in result.instructions if i and not _HASHTAG_RE.fullmatch(i)]
    return result
