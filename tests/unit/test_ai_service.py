"""
Unit Tests for AIService
========================

Purpose
-------
Test every assistant operation across its three modes: demo account,
no API key, and a (mocked) OpenAI client, including the fallbacks taken
when the model fails or answers with unusable output.

Testing Strategy
----------------
- `AsyncOpenAI` replaced by a MagicMock with an AsyncMock `create`
- No network access
"""

import json

import pytest
from openai import OpenAIError

from src.core.logging.logger import get_logger
from src.modules.ai.service import (
    ANALYSIS_FALLBACK,
    DEMO_CHAT_RESPONSES,
    DEMO_SUGGESTIONS,
    GENERIC_SUGGESTIONS,
    UNAVAILABLE_CHAT_RESPONSE,
    AIService,
    classify_message,
    fallback_parse,
    rule_based_task,
)
from src.modules.shared.exceptions import ValidationError

pytestmark = pytest.mark.unit


@pytest.fixture
def offline_ai(config_manager, event_bus):
    return AIService(config_manager, event_bus, get_logger("tests.ai"))


@pytest.fixture
def online_ai(config_manager, event_bus, mock_openai_client):
    return AIService(config_manager, event_bus, get_logger("tests.ai"), client=mock_openai_client, model="gpt-test")


# ============================================================================
# PURE HELPERS
# ============================================================================


class TestHelpers:
    @pytest.mark.parametrize(
        "message,category",
        [
            ("给我一些建议", "suggestion"),
            ("帮我分析一下进度", "insight"),
            ("如何养成早起习惯", "advice"),
            ("你好", "general"),
        ],
    )
    def test_classify_message(self, message, category):
        assert classify_message(message) == category

    def test_fallback_parse_truncates_title(self):
        parsed = fallback_parse("x" * 80, 0.7)

        assert parsed["type"] == "task"
        assert parsed["category"] == "side_quest"
        assert len(parsed["title"]) == 50
        assert parsed["confidence"] == 0.7

    @pytest.mark.parametrize(
        "description,category,difficulty,energy_balls",
        [
            ("每天跑步", "habit", "easy", 1),
            ("坚持每周写一篇技术博客并且在周末整理本周的学习笔记", "habit", "medium", 2),
            ("修复登录页面的样式问题", "todo", "easy", 1),
        ],
    )
    def test_rule_based_task(self, description, category, difficulty, energy_balls):
        task = rule_based_task(description)

        assert task["category"] == category
        assert task["difficulty"] == difficulty
        assert task["energyBalls"] == energy_balls
        assert task["estimatedDuration"] == energy_balls * 15
        assert task["skillName"] is None
        assert task["aiGenerated"] is False


# ============================================================================
# CHAT & SUGGESTIONS
# ============================================================================


class TestChat:
    async def test_empty_message_rejected(self, offline_ai):
        with pytest.raises(ValidationError) as exc_info:
            await offline_ai.chat("   ")

        assert exc_info.value.field == "message"

    async def test_demo_rotates_canned_answers(self, online_ai, mock_openai_client):
        result = await online_ai.chat("hello", demo=True)

        assert result["response"] == DEMO_CHAT_RESPONSES[len("hello") % 3]
        assert result["category"] == "general"
        mock_openai_client.chat.completions.create.assert_not_called()

    async def test_without_key_returns_unavailable(self, offline_ai):
        result = await offline_ai.chat("你好")

        assert offline_ai.enabled is False
        assert result["response"] == UNAVAILABLE_CHAT_RESPONSE
        assert result["fallback"] is True

    async def test_model_answer_with_context(self, online_ai, mock_openai_client):
        # Arrange
        mock_openai_client.reply("先完成最重要的一件事。")
        context = {"goals": [{"title": "学英语", "progress": 0.5}], "skills": [], "tasks": []}

        # Act
        result = await online_ai.chat("给我一些建议", context=context)

        # Assert
        assert result["response"] == "先完成最重要的一件事。"
        assert result["category"] == "suggestion"
        kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert "学英语" in kwargs["messages"][0]["content"]
        assert "response_format" not in kwargs

    async def test_api_error_falls_back(self, online_ai, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = OpenAIError("connection reset")

        result = await online_ai.chat("你好")

        assert result["response"] == UNAVAILABLE_CHAT_RESPONSE
        assert result["fallback"] is True


class TestSuggestions:
    async def test_demo(self, offline_ai):
        result = await offline_ai.suggestions(demo=True)

        assert result["suggestions"] == DEMO_SUGGESTIONS

    async def test_bullets_extracted(self, online_ai, mock_openai_client):
        mock_openai_client.reply("以下是建议：\n• 早睡早起\n• 每天读书\n谢谢")

        result = await online_ai.suggestions()

        assert result["suggestions"] == ["• 早睡早起", "• 每天读书"]
        assert "fallback" not in result

    async def test_no_bullets_uses_generic(self, online_ai, mock_openai_client):
        mock_openai_client.reply("没有建议")

        result = await online_ai.suggestions()

        assert result["suggestions"] == GENERIC_SUGGESTIONS
        assert result["fallback"] is True


# ============================================================================
# PARSING & ANALYSIS
# ============================================================================


class TestParseInput:
    async def test_empty_input_rejected(self, offline_ai):
        with pytest.raises(ValidationError) as exc_info:
            await offline_ai.parse_input("")

        assert exc_info.value.field == "input"

    async def test_demo(self, offline_ai):
        result = await offline_ai.parse_input("读完一本书", demo=True)

        assert result["aiGenerated"] is False
        assert result["parsed"]["confidence"] == 0.8

    async def test_without_key(self, offline_ai):
        result = await offline_ai.parse_input("读完一本书")

        assert result["fallback"] is True
        assert result["parsed"]["confidence"] == 0.7

    async def test_model_json(self, online_ai, mock_openai_client):
        parsed = {"type": "goal", "title": "读完一本书", "confidence": 0.9}
        mock_openai_client.reply(json.dumps(parsed, ensure_ascii=False))

        result = await online_ai.parse_input("读完一本书")

        assert result["parsed"] == parsed
        assert result["aiGenerated"] is True
        kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}

    async def test_model_non_json(self, online_ai, mock_openai_client):
        mock_openai_client.reply("I think this is a goal")

        result = await online_ai.parse_input("读完一本书")

        assert result["aiGenerated"] is True
        assert result["fallback"] is True
        assert result["parsed"]["confidence"] == 0.8


class TestAnalyzeTask:
    async def test_title_required(self, offline_ai):
        with pytest.raises(ValidationError) as exc_info:
            await offline_ai.analyze_task("")

        assert exc_info.value.validation_message == "任务标题是必需的"

    async def test_without_key(self, offline_ai):
        result = await offline_ai.analyze_task("写周报")

        assert result == dict(ANALYSIS_FALLBACK, fallback=True)

    async def test_model_answer_normalized(self, online_ai, mock_openai_client):
        mock_openai_client.reply(
            '{"category": "routine", "difficulty": "HARD", "skills": ["写作"], "estimatedDuration": 90, '
            '"reasoning": "需要专注"}'
        )

        result = await online_ai.analyze_task("写周报", "总结本周进展")

        assert result == {
            "category": "habit",
            "difficulty": "hard",
            "skills": ["写作"],
            "estimatedDuration": 90,
            "reasoning": "需要专注",
        }

    @pytest.mark.parametrize("duration", [0, -15, 24 * 60 + 1])
    async def test_out_of_range_duration_uses_default(self, online_ai, mock_openai_client, duration):
        mock_openai_client.reply(
            f'{{"category": "todo", "difficulty": "easy", "skills": [], "estimatedDuration": {duration}}}'
        )

        result = await online_ai.analyze_task("写周报")

        assert result["estimatedDuration"] == 30
        assert result["difficulty"] == "easy"
        assert "fallback" not in result


class TestAnalyzeForCreation:
    async def test_demo_is_rule_based(self, online_ai, mock_openai_client):
        result = await online_ai.analyze_for_creation("每天冥想", demo=True)

        assert result == rule_based_task("每天冥想")
        mock_openai_client.chat.completions.create.assert_not_called()

    async def test_out_of_range_energy_ignored(self, online_ai, mock_openai_client):
        mock_openai_client.reply('{"category": "todo", "difficulty": "medium", "energyBalls": 12}')

        result = await online_ai.analyze_for_creation("整理书架")

        assert result["energyBalls"] is None
        assert result["estimatedDuration"] == 30
        assert result["title"] == "整理书架"
        assert result["aiGenerated"] is True

    async def test_api_error_falls_back(self, online_ai, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = OpenAIError("timeout")

        result = await online_ai.analyze_for_creation("每天冥想")

        assert result == dict(rule_based_task("每天冥想"), fallback=True)
