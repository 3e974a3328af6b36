"""Tests for mealkit.extract.extractor orchestration."""

import logging
from unittest.mock import AsyncMock, patch

import pytest

from mealkit.errors import AuthError, InvalidRequest, ModelTimeout, TransportError, UpstreamError
from mealkit.extract.extractor import OFFLINE_REASON, extract, reports_success
from mealkit.extract.fallback import fallback_record
from mealkit.extract.models import (
    ActivityRequest,
    Fallback,
    IngredientsRequest,
    Ok,
    RecipeAnalysisRequest,
    TaskKind,
)

PUMPKIN = "Saturday pumpkin picking at Sunny Farms, 10am, kids love it"


class TestExtract:
    """Test the build → call → normalize → fallback flow."""

    def test_ok_result(self, fake_llm):
        fake_llm.acall.return_value = '{"title": "Zoo Trip", "description": "Fun day", "categories": ["family"]}'
        result = extract(ActivityRequest(text="Zoo trip with the kids"), llm=fake_llm)

        assert isinstance(result, Ok)
        assert result.kind == "ok"
        assert result.task == TaskKind.ACTIVITY
        assert result.record.title == "Zoo Trip"
        assert result.record.categories == ["family"]

    def test_prompt_sent_with_system_message(self, fake_llm):
        fake_llm.acall.return_value = '{"title": "Zoo", "description": "Fun"}'
        extract(ActivityRequest(text="Zoo trip"), llm=fake_llm)
        args, kwargs = fake_llm.acall.call_args
        assert "Zoo trip" in args[0]
        assert "JSON" in kwargs["system_message"]

    @pytest.mark.parametrize("error", [
        AuthError("no key"),
        ModelTimeout("too slow"),
        TransportError("dns"),
        UpstreamError(502),
    ])
    def test_model_failures_degrade(self, fake_llm, error, caplog):
        """Every model failure yields the fallback record, logged at WARNING."""
        fake_llm.acall.side_effect = error
        request = ActivityRequest(text=PUMPKIN)
        with caplog.at_level(logging.WARNING, logger="mealkit.extract.extractor"):
            result = extract(request, llm=fake_llm)

        assert isinstance(result, Fallback)
        assert result.record == fallback_record(request)
        assert result.reason.startswith(error.kind)
        assert any("fallback" in r.message for r in caplog.records)

    def test_unparseable_response_degrades(self, fake_llm):
        fake_llm.acall.return_value = "Sorry, I can't help with that."
        result = extract(IngredientsRequest(category="Pizza Night"), llm=fake_llm)
        assert isinstance(result, Fallback)
        assert result.reason.startswith("normalization_failed")
        assert result.record.ingredients[0].name == "Pizza dough"

    def test_fail_closed_list_degrades(self, fake_llm):
        """One nameless ingredient discards the model output entirely."""
        fake_llm.acall.return_value = '[{"name": "Dough"}, {"amount": "1"}]'
        result = extract(IngredientsRequest(category="Pizza Night"), llm=fake_llm)
        assert isinstance(result, Fallback)
        assert "no name" in result.reason

    def test_invalid_request_raises_before_model(self, fake_llm):
        """Invalid requests propagate and never reach the model."""
        with pytest.raises(InvalidRequest, match="Content is required"):
            extract(ActivityRequest(text=""), llm=fake_llm)
        fake_llm.acall.assert_not_called()

    def test_offline_skips_model(self, fake_llm):
        result = extract(IngredientsRequest(category="Tacos"), llm=fake_llm, offline=True)
        assert isinstance(result, Fallback)
        assert result.reason == OFFLINE_REASON
        fake_llm.acall.assert_not_called()

    def test_offline_still_validates(self):
        with pytest.raises(InvalidRequest):
            extract(IngredientsRequest(category=""), offline=True)

    def test_client_built_from_config(self, config):
        """Without an explicit client, the task's profile is used."""
        with patch("mealkit.extract.llm_client.LLMClient.acall", AsyncMock(return_value='{"category": "Pad Thai"}')) as mock:
            result = extract(RecipeAnalysisRequest(url="https://example.com/pad-thai"), config=config)
        assert isinstance(result, Ok)
        assert result.record.category == "Pad Thai"
        assert mock.await_count == 1

    def test_pumpkin_picking_end_to_end(self, clean_env, config):
        """With the model unreachable, the keyword rules still produce a useful record."""
        with patch("litellm.acompletion", AsyncMock(side_effect=ConnectionError("offline"))):
            result = extract(ActivityRequest(text=PUMPKIN), config=config)

        assert isinstance(result, Fallback)
        assert result.reason.startswith("transport_error")
        record = result.record
        assert record.title.startswith("Saturday pumpkin picking")
        assert {"family", "outdoor"} <= set(record.categories)
        assert record.time == "10am"
        assert record.date == "Saturday"


class TestReportsSuccess:
    """Test the caller-facing success flag."""

    def test_ok_is_success(self):
        record = fallback_record(RecipeAnalysisRequest(url="https://example.com/ragu"))
        assert reports_success(Ok(task=TaskKind.RECIPE_ANALYSIS, record=record))

    def test_recipe_fallback_reports_failure(self):
        """A slug guess is reported transparently as unsuccessful."""
        record = fallback_record(RecipeAnalysisRequest(url="https://example.com/ragu"))
        assert not reports_success(Fallback(task=TaskKind.RECIPE_ANALYSIS, record=record, reason="timeout"))

    def test_other_fallbacks_report_success(self):
        record = fallback_record(IngredientsRequest(category="Tacos"))
        assert reports_success(Fallback(task=TaskKind.INGREDIENTS, record=record, reason="timeout"))
