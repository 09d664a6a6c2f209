# src/app/services/recipe_normalizer.py
from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from src.app.domain.errors import InsufficientDataError
from src.app.domain.models import CanonicalRecipe, Platform
from src.services.recipe_text import clean_string, parse_duration_minutes, parse_servings

DEFAULT_TITLE = "Untitled Recipe"

_TITLE_KEYS = ("title", "name", "recipeTitle")
_INGREDIENT_KEYS = ("ingredients", "recipeIngredient", "ingredientList")
_INSTRUCTION_KEYS = ("instructions", "recipeInstructions", "steps", "directions")
_TIME_KEYS = ("cookingTime", "cooking_time", "totalTime", "cookTime")
_SERVING_KEYS = ("servings", "recipeYield", "yield", "serves")
_IMAGE_LIST_KEYS = ("images", "imageUrls", "image")
_IMAGE_SINGLE_KEYS = ("thumbnailUrl", "thumbnail_url", "thumbnail", "coverImage")

_CONSUMED_KEYS = frozenset(
    _TITLE_KEYS + _INGREDIENT_KEYS + _INSTRUCTION_KEYS + _TIME_KEYS + _SERVING_KEYS + _IMAGE_LIST_KEYS
    + ("source", "sourceUrl", "extractedAt", "metadata")
)


def _as_mapping(raw: Any) -> dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if dataclasses.is_dataclass(raw) and not isinstance(raw, type):
        return dataclasses.asdict(raw)
    if hasattr(raw, "model_dump"):
        return raw.model_dump()
    if hasattr(raw, "__dict__"):
        return {k: v for k, v in vars(raw).items() if not k.startswith("_")}
    return {}


def _first(data: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, "", [], ()):
            return value
    return None


def _text_items(value: Any) -> List[str]:
    """Flatten strings, lists and HowToStep-like dicts into clean lines."""
    if value is None:
        return []
    if isinstance(value, str):
        return [line.strip() for line in value.splitlines() if line.strip()]
    if isinstance(value, Mapping):
        text = clean_string(value.get("text")) or clean_string(value.get("name"))
        nested = value.get("itemListElement")
        if nested is not None:
            return _text_items(nested)
        return [text] if text else []
    if isinstance(value, (list, tuple)):
        out: List[str] = []
        for item in value:
            out.extend(_text_items(item))
        return out
    return []


def _image_urls(data: Mapping[str, Any]) -> List[str]:
    urls: List[str] = []
    for key in _IMAGE_LIST_KEYS:
        value = data.get(key)
        items = value if isinstance(value, (list, tuple)) else [value]
        for item in items:
            url = clean_string(item.get("url")) if isinstance(item, Mapping) else clean_string(item)
            if url:
                urls.append(url)
    for key in _IMAGE_SINGLE_KEYS:
        url = clean_string(data.get(key))
        if url:
            urls.append(url)
    return list(dict.fromkeys(urls))


def to_canonical_recipe(
    raw: Any,
    source_url: str,
    platform: Platform,
    extracted_at: Optional[datetime] = None,
) -> CanonicalRecipe:
    """
    Transform a collaborator-specific result into a CanonicalRecipe.

    Raises:
        InsufficientDataError: If nothing recipe-like was extracted
    """
    data = _as_mapping(raw)
    title = clean_string(_first(data, _TITLE_KEYS))
    ingredients = _text_items(_first(data, _INGREDIENT_KEYS))
    instructions = _text_items(_first(data, _INSTRUCTION_KEYS))

    if not title and not ingredients and not instructions:
        raise InsufficientDataError(
            f"No recipe content found at {source_url}",
            platform=platform.value,
        )

    platform_metadata: dict[str, Any] = {}
    nested = data.get("metadata")
    if isinstance(nested, Mapping):
        platform_metadata.update(nested)
    for key, value in data.items():
        if key not in _CONSUMED_KEYS and value is not None:
            platform_metadata[key] = value

    reported_source = clean_string(data.get("sourceUrl")) or clean_string(data.get("source"))
    if not reported_source or not reported_source.startswith(("http://", "https://")):
        reported_source = source_url

    return CanonicalRecipe(
        title=title or DEFAULT_TITLE,
        source_url=reported_source,
        platform=platform,
        extracted_at=extracted_at or datetime.now(timezone.utc),
        ingredients=tuple(ingredients),
        instructions=tuple(instructions),
        cooking_time_minutes=parse_duration_minutes(_first(data, _TIME_KEYS)),
        servings=parse_servings(_first(data, _SERVING_KEYS)),
        images=tuple(_image_urls(data)),
        platform_metadata=platform_metadata,
    )
