"""Tests for the message catalog."""

import pytest
import yaml

from queryadvisor.analyzer.models import RecommendationType
from queryadvisor.exceptions import ConfigurationError
from queryadvisor.i18n import LOCALES_DIR, MessageCatalog, available_languages


def recommendation_keys(language: str) -> set[str]:
    with open(LOCALES_DIR / f"{language}.yaml", encoding="utf-8") as f:
        return set(yaml.safe_load(f)["recommendations"])


class TestMessageCatalog:
    """Tests for template lookup and rendering."""

    def test_available_languages(self):
        assert available_languages() == ["en", "id"]

    def test_render_english(self):
        text = MessageCatalog("en").render(RecommendationType.TABLE_SCAN, {"table_name": "orders"})

        assert text.message == "Full table scan detected on table orders"
        assert text.suggestion == "Consider adding appropriate indexes"
        assert text.impact
        assert text.implementation[0] == "Review WHERE clause conditions"

    def test_render_indonesian(self):
        text = MessageCatalog("id").render("TABLE_SCAN", {"table_name": "orders"})

        assert text.message == "Full table scan terdeteksi pada tabel orders"

    def test_missing_param_left_as_placeholder(self):
        text = MessageCatalog().render("LARGE_SORT", {})

        assert "{rows}" in text.message

    def test_unknown_type_falls_back_to_key(self):
        text = MessageCatalog().render("NOT_A_TYPE", {})

        assert text.message == "recommendations.NOT_A_TYPE"
        assert text.implementation == ()

    def test_ui_text_and_fallback(self):
        assert MessageCatalog("id").text("ui.headers.results") == "Hasil Analisis Query"
        assert MessageCatalog().text("ui.no.such.key") == "ui.no.such.key"

    def test_text_substitution(self):
        line = MessageCatalog().text("ui.labels.summary", total=3, high=1, medium=1, low=1)

        assert line == "3 recommendation(s): 1 high, 1 medium, 1 low"

    def test_lines(self):
        steps = MessageCatalog().lines("connection.solutions.mysql")

        assert steps[0] == "1. Make sure MySQL server is running"
        assert MessageCatalog().lines("ui.headers.plan") == []

    def test_unsupported_language(self):
        with pytest.raises(ConfigurationError) as exc_info:
            MessageCatalog("fr")

        assert exc_info.value.config_key == "language"
        assert "en, id" in exc_info.value.message


class TestLocaleCoverage:
    """Every recommendation type has text in every bundled language."""

    @pytest.mark.parametrize("language", ["en", "id"])
    def test_all_types_have_templates(self, language):
        expected = {t.value for t in RecommendationType}

        assert expected <= recommendation_keys(language)

    @pytest.mark.parametrize("rec_type", list(RecommendationType))
    def test_every_template_renders_fully(self, rec_type):
        params = {
            "table_name": "orders",
            "type": "ALL",
            "rows": 10,
            "batches": 2,
            "blocks": 5,
            "index_name": "idx_a",
            "indexes": "idx_a, idx_b",
            "ratio": 0.75,
            "planning_time_ms": 1200.0,
            "partitions": 4,
            "cost": 150000.0,
            "operation": "Index Scan on orders",
            "loops": 100,
            "condition": "(a < b)",
        }

        for language in ("en", "id"):
            text = MessageCatalog(language).render(rec_type, params)
            assert "{" not in text.message
            assert text.suggestion
            assert text.implementation
