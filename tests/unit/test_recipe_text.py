from __future__ import annotations

import pytest

from src.services.recipe_text import parse_duration_minutes, parse_recipe_text, parse_servings


class TestParseDuration:
    @pytest.mark.parametrize(
        ("value", "minutes"),
        [
            ("4 hours", 240),
            ("1 hr 30 mins", 90),
            ("PT1H15M", 75),
            ("PT45M", 45),
            ("30-40 min", 30),
            ("45", 45),
            ("1d", 1440),
            ("1,5 horas", 90),
            (20, 20),
        ],
    )
    def test_parses(self, value, minutes: int) -> None:
        assert parse_duration_minutes(value) == minutes

    @pytest.mark.parametrize("value", [None, "", "soon", 0, True, "PT"])
    def test_unparseable(self, value) -> None:
        assert parse_duration_minutes(value) is None


class TestParseServings:
    @pytest.mark.parametrize(
        ("value", "servings"),
        [
            ("Serves 4-6", 4),
            ("12 cookies", 12),
            (6, 6),
            (["", "six", "6 people"], 6),
        ],
    )
    def test_parses(self, value, servings: int) -> None:
        assert parse_servings(value) == servings

    @pytest.mark.parametrize("value", [None, "a few", 0, "0 portions"])
    def test_unparseable(self, value) -> None:
        assert parse_servings(value) is None


class TestParseRecipeText:
    def test_sections_with_headers(self) -> None:
        text = (
            "Chocolate Cake\n"
            "Serves: 8\n"
            "Cook time: 35 minutes\n"
            "Ingredients:\n"
            "- 2 cups flour\n"
            "- 1 cup sugar\n"
            "Instructions:\n"
            "1. Mix\n"
            "2. Bake\n"
            "#baking"
        )
        parsed = parse_recipe_text(text)
        assert parsed.title == "Chocolate Cake"
        assert parsed.ingredients == ["2 cups flour", "1 cup sugar"]
        assert parsed.instructions == ["Mix", "Bake"]
        assert parsed.servings == "8"
        assert parsed.cooking_time == "35 minutes"
        assert parsed.tags == ["baking"]
        assert not parsed.is_empty

    def test_heuristics_without_headers(self) -> None:
        text = "Quick salad\n2 tomatoes\n1.5 cups lettuce\n1) Chop everything\n2) Toss with oil"
        parsed = parse_recipe_text(text)
        assert parsed.title == "Quick salad"
        assert parsed.ingredients == ["2 tomatoes", "1.5 cups lettuce"]
        assert parsed.instructions == ["Chop everything", "Toss with oil"]

    def test_fallback_title_wins(self) -> None:
        parsed = parse_recipe_text("Ingredients:\n1 egg", fallback_title="Omelette video")
        assert parsed.title == "Omelette video"
        assert parsed.ingredients == ["1 egg"]

    def test_portuguese_headers(self) -> None:
        parsed = parse_recipe_text("Bolo\nIngredientes:\n3 ovos\nModo de preparo:\nMisture tudo")
        assert parsed.ingredients == ["3 ovos"]
        assert parsed.instructions == ["Misture tudo"]

    @pytest.mark.parametrize("text", [None, ""])
    def test_empty(self, text) -> None:
        parsed = parse_recipe_text(text)
        assert parsed.is_empty
        assert parsed.title is None
