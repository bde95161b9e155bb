"""
AI Service
==========

Purpose
-------
OpenAI-backed assistant features: chat, suggestions, free-text parsing,
task analysis, and the analysis step of intelligent task creation.

Graceful Degradation
--------------------
Every operation answers even when the model cannot be used:
- demo account: canned responses, `aiGenerated: false`
- no `OPENAI_API_KEY`: deterministic fallbacks, `fallback: true`
- network/API failure or a non-JSON answer: the same fallbacks, logged at
  WARNING
There are no retries; a failed call costs one request timeout at most.

Dependencies
------------
- openai (AsyncOpenAI chat completions, JSON response format)
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from openai import AsyncOpenAI, OpenAIError

from src.core.config.config import Config
from src.core.exceptions import ExternalServiceError
from src.core.validation.input_validator import InputValidator
from src.domain.progression.rewards import DIFFICULTY_ENERGY, Difficulty, TaskCategory, normalize_category
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


# ============================================================================
# Canned responses
# ============================================================================

DEMO_CHAT_RESPONSES = (
    "作为演示用户，我建议您先完成一些简单的任务来熟悉系统。",
    "您可以创建一些日常任务来开始您的个人成长之旅。",
    "设定明确的目标是成功的第一步，让我们一起努力！",
)

UNAVAILABLE_CHAT_RESPONSE = "AI 服务暂时不可用，请稍后再试。"

DEMO_SUGGESTIONS = [
    "• 创建您的第一个技能，开始追踪进度",
    "• 设定一个小目标，比如每天阅读30分钟",
    "• 完成一些简单的任务来熟悉系统",
    "• 尝试使用番茄钟来提高专注力",
]

GENERIC_SUGGESTIONS = [
    "• 查看您的待办任务，优先完成重要的任务",
    "• 为您的目标设定具体的里程碑",
    "• 保持每日打卡习惯，建立良好的节奏",
    "• 定期回顾和调整您的计划",
]

ANALYSIS_FALLBACK: Dict[str, Any] = {
    "category": "todo",
    "difficulty": "medium",
    "skills": ["通用技能"],
    "estimatedDuration": 30,
    "reasoning": "AI分析暂时不可用，使用默认设置",
}

HABIT_KEYWORDS = ("每天", "坚持", "养成")

CHAT_SYSTEM_PROMPT = (
    "你是一个专业的个人成长AI助手，帮助用户在技能发展、目标达成和任务管理方面获得成功。"
)
PARSE_SYSTEM_PROMPT = (
    "你是一个智能任务解析助手，擅长将自然语言转换为结构化的任务或目标数据。始终返回有效的JSON格式。"
)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def classify_message(message: str) -> str:
    """Response category from keywords in the user's message."""
    if "建议" in message or "推荐" in message:
        return "suggestion"
    if "分析" in message or "进度" in message:
        return "insight"
    if "如何" in message or "怎么" in message:
        return "advice"
    return "general"


def fallback_parse(text: str, confidence: float) -> Dict[str, Any]:
    return {
        "type": "task",
        "category": "side_quest",
        "title": text[:50],
        "description": "基于您的输入创建的任务",
        "priority": "medium",
        "estimatedDuration": 30,
        "confidence": confidence,
    }


def rule_based_task(description: str) -> Dict[str, Any]:
    """
    Task shape from a description without a model.

    Habit when the text mentions daily practice, todo otherwise; longer
    descriptions are rated harder.

    Example:
        >>> rule_based_task("每天跑步")["category"]
        'habit'
    """
    text = description.strip()
    category = TaskCategory.HABIT if any(k in text for k in HABIT_KEYWORDS) else TaskCategory.TODO

    if len(text) > 50:
        difficulty = Difficulty.HARD
    elif len(text) > 20:
        difficulty = Difficulty.MEDIUM
    else:
        difficulty = Difficulty.EASY

    energy_balls = DIFFICULTY_ENERGY[difficulty]
    return {
        "category": category.value,
        "title": text,
        "difficulty": difficulty.value,
        "skillName": None,
        "energyBalls": energy_balls,
        "estimatedDuration": energy_balls * 15,
        "aiGenerated": False,
    }


def _format_context(context: Optional[Mapping[str, Any]]) -> str:
    """Render the client-supplied context (goals, skills, tasks) for a prompt."""
    if not context:
        return ""

    lines: List[str] = []
    profile = context.get("profile") or {}
    if profile:
        lines.append(f"- 姓名: {profile.get('name') or '未设置'}")
        lines.append(f"- 职业: {profile.get('occupation') or '未设置'}")
        lines.append(f"- 个人使命: {profile.get('mission') or '未设置'}")

    goals = [g for g in context.get("goals") or [] if isinstance(g, Mapping)]
    if goals:
        lines.append("\n当前目标:")
        for goal in goals:
            progress = round(float(goal.get("progress") or 0) * 100)
            lines.append(f"- {goal.get('title')}: {goal.get('description') or '无描述'} (完成度: {progress}%)")

    skills = [s for s in context.get("skills") or [] if isinstance(s, Mapping)]
    if skills:
        lines.append("\n技能情况:")
        for skill in skills:
            lines.append(f"- {skill.get('name')}: 等级 {skill.get('level')}, 经验 {skill.get('exp')}/{skill.get('maxExp')}")

    tasks = [t for t in context.get("tasks") or [] if isinstance(t, Mapping) and not t.get("completed")]
    if tasks:
        lines.append("\n待完成任务:")
        for task in tasks[:5]:
            lines.append(f"- {task.get('title')}: {task.get('description') or '无描述'}")

    return "\n".join(lines)


class AIService(BaseService):
    """
    Public Methods
    --------------
    - chat() -> {response, category, timestamp}
    - suggestions() -> {suggestions, timestamp}
    - parse_input() -> {parsed, aiGenerated, fallback?, timestamp}
    - analyze_task() -> {category, difficulty, skills, estimatedDuration, reasoning}
    - analyze_for_creation() -> task shape for intelligent creation
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self.model = model or Config.OPENAI_MODEL
        if client is None and Config.ai_enabled():
            client = AsyncOpenAI(
                api_key=Config.OPENAI_API_KEY,
                timeout=Config.OPENAI_TIMEOUT_SECONDS,
                max_retries=0,
            )
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def _complete(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float,
        json_mode: bool = False,
    ) -> str:
        """
        One chat completion; returns the message text.

        Raises:
            ExternalServiceError: API or network failure, or an empty answer
        """
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**kwargs)  # type: ignore[union-attr]
        except OpenAIError as exc:
            raise ExternalServiceError("openai", "chat.completions", exc) from exc
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ExternalServiceError("openai", "chat.completions")
        return content

    def _log_fallback(self, operation: str, error: Exception) -> None:
        self.log.warning(
            f"AI {operation} failed, using fallback",
            extra={"operation": operation, "error_type": type(error).__name__, "error_message": str(error)},
        )

    # ========================================================================
    # CHAT
    # ========================================================================

    async def chat(
        self,
        message: Any,
        context: Optional[Mapping[str, Any]] = None,
        demo: bool = False,
    ) -> Dict[str, Any]:
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("message", "Message is required")

        if demo:
            response = DEMO_CHAT_RESPONSES[len(message) % len(DEMO_CHAT_RESPONSES)]
            return {"response": response, "category": "general", "timestamp": _timestamp()}

        if not self.enabled:
            return {
                "response": UNAVAILABLE_CHAT_RESPONSE,
                "category": "general",
                "fallback": True,
                "timestamp": _timestamp(),
            }

        system_prompt = CHAT_SYSTEM_PROMPT
        rendered = _format_context(context)
        if rendered:
            system_prompt += f"\n\n用户背景信息:\n{rendered}"
        system_prompt += "\n\n请以友好、专业、激励的语气回答用户的问题。回答要简洁明了，重点突出。"

        try:
            answer = await self._complete(
                [{"role": "system", "content": system_prompt}, {"role": "user", "content": message}],
                max_tokens=500,
                temperature=0.7,
            )
        except ExternalServiceError as exc:
            self._log_fallback("chat", exc)
            return {
                "response": UNAVAILABLE_CHAT_RESPONSE,
                "category": "general",
                "fallback": True,
                "timestamp": _timestamp(),
            }

        return {"response": answer, "category": classify_message(message), "timestamp": _timestamp()}

    # ========================================================================
    # SUGGESTIONS
    # ========================================================================

    async def suggestions(
        self,
        context: Optional[Mapping[str, Any]] = None,
        demo: bool = False,
    ) -> Dict[str, Any]:
        if demo:
            return {"suggestions": list(DEMO_SUGGESTIONS), "timestamp": _timestamp()}
        if not self.enabled:
            return {"suggestions": list(GENERIC_SUGGESTIONS), "fallback": True, "timestamp": _timestamp()}

        prompt = (
            "你是一个专业的个人成长AI助手。基于用户当前的情况，提供3-5个具体、可执行的建议。\n\n"
            f"用户情况分析:\n{_format_context(context) or '暂无数据'}\n\n"
            "每个建议要简洁明了，可直接执行。用\"•\"开头列出建议。"
        )

        try:
            answer = await self._complete([{"role": "user", "content": prompt}], max_tokens=400, temperature=0.8)
        except ExternalServiceError as exc:
            self._log_fallback("suggestions", exc)
            return {"suggestions": list(GENERIC_SUGGESTIONS), "fallback": True, "timestamp": _timestamp()}

        items = [line.strip() for line in answer.splitlines() if line.strip().startswith("•")]
        if not items:
            return {"suggestions": list(GENERIC_SUGGESTIONS), "fallback": True, "timestamp": _timestamp()}
        return {"suggestions": items, "timestamp": _timestamp()}

    # ========================================================================
    # PARSE INPUT
    # ========================================================================

    async def parse_input(self, text: Any, demo: bool = False) -> Dict[str, Any]:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("input", "Invalid input")

        if demo:
            return {"parsed": fallback_parse(text, 0.8), "aiGenerated": False, "timestamp": _timestamp()}
        if not self.enabled:
            return {
                "parsed": fallback_parse(text, 0.7),
                "aiGenerated": False,
                "fallback": True,
                "timestamp": _timestamp(),
            }

        prompt = (
            f"解析以下用户输入，判断这是任务、目标还是习惯，并提供结构化建议：\n\n用户输入：\"{text}\"\n\n"
            "请以JSON格式返回解析结果：\n"
            '{"type": "task|goal|habit", "category": "main_quest|side_quest|habit", '
            '"title": "建议的标题", "description": "建议的描述", "priority": "high|medium|low", '
            '"estimatedDuration": 数字(分钟), "confidence": 0.0到1.0的置信度}'
        )

        try:
            answer = await self._complete(
                [{"role": "system", "content": PARSE_SYSTEM_PROMPT}, {"role": "user", "content": prompt}],
                max_tokens=300,
                temperature=0.3,
                json_mode=True,
            )
        except ExternalServiceError as exc:
            self._log_fallback("parse_input", exc)
            return {
                "parsed": fallback_parse(text, 0.7),
                "aiGenerated": False,
                "fallback": True,
                "timestamp": _timestamp(),
            }

        try:
            parsed = json.loads(answer)
            if not isinstance(parsed, dict):
                raise ValueError("Parsed answer is not an object")
        except ValueError as exc:
            # the model answered, but not with usable JSON
            self._log_fallback("parse_input", exc)
            return {
                "parsed": fallback_parse(text, 0.8),
                "aiGenerated": True,
                "fallback": True,
                "timestamp": _timestamp(),
            }

        return {"parsed": parsed, "aiGenerated": True, "timestamp": _timestamp()}

    # ========================================================================
    # TASK ANALYSIS
    # ========================================================================

    async def analyze_task(self, title: Any, description: Optional[str] = None) -> Dict[str, Any]:
        """Suggest category, difficulty and skills for a task title."""
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("title", "任务标题是必需的")
        if not self.enabled:
            return dict(ANALYSIS_FALLBACK, fallback=True)

        prompt = (
            f"分析以下任务，智能建议最适合的分类和难度。任务标题：\"{title}\"，描述：\"{description or '无'}\"。\n\n"
            '请返回JSON格式：{"category": "habit|daily|todo", "difficulty": "easy|medium|hard", '
            '"skills": ["相关技能1"], "estimatedDuration": 30, "reasoning": "分析原因"}'
        )

        try:
            answer = await self._complete(
                [{"role": "user", "content": prompt}], max_tokens=300, temperature=0.3, json_mode=True
            )
            analysis = json.loads(answer)
            if not isinstance(analysis, dict):
                raise ValueError("Analysis is not an object")
        except (ExternalServiceError, ValueError) as exc:
            self._log_fallback("analyze_task", exc)
            return dict(ANALYSIS_FALLBACK, fallback=True)

        try:
            duration = InputValidator.validate_optional_integer(
                analysis.get("estimatedDuration"), "estimatedDuration", 1, 24 * 60
            )
        except ValidationError:
            duration = None

        return {
            "category": normalize_category(analysis.get("category")).value,
            "difficulty": Difficulty.parse(analysis.get("difficulty")).value,
            "skills": [str(s) for s in analysis.get("skills") or []][:5],
            "estimatedDuration": duration or ANALYSIS_FALLBACK["estimatedDuration"],
            "reasoning": str(analysis.get("reasoning") or ""),
        }

    async def analyze_for_creation(self, description: str, demo: bool = False) -> Dict[str, Any]:
        """
        Task shape for intelligent creation.

        Returns:
            {category, title, difficulty, skillName, energyBalls,
             estimatedDuration, aiGenerated}
        """
        if demo or not self.enabled:
            return rule_based_task(description)

        prompt = (
            f"基于用户输入的描述，创建一个智能任务。描述：\"{description}\"\n\n"
            '返回JSON格式：{"category": "habit|todo", "title": "简洁的任务标题", '
            '"difficulty": "easy|medium|hard", "skillName": "对应的核心技能名称", "energyBalls": 1-6}'
        )

        try:
            answer = await self._complete(
                [{"role": "user", "content": prompt}], max_tokens=200, temperature=0.3, json_mode=True
            )
            analysis = json.loads(answer)
            if not isinstance(analysis, dict):
                raise ValueError("Analysis is not an object")
        except (ExternalServiceError, ValueError) as exc:
            self._log_fallback("analyze_for_creation", exc)
            return dict(rule_based_task(description), fallback=True)

        difficulty = Difficulty.parse(analysis.get("difficulty"))
        try:
            energy_balls = InputValidator.validate_optional_integer(
                analysis.get("energyBalls"), "energyBalls", 1, 6
            )
        except ValidationError:
            energy_balls = None

        title = analysis.get("title")
        return {
            "category": normalize_category(analysis.get("category")).value,
            "title": title.strip() if isinstance(title, str) and title.strip() else description.strip(),
            "difficulty": difficulty.value,
            "skillName": analysis.get("skillName") if isinstance(analysis.get("skillName"), str) else None,
            "energyBalls": energy_balls,
            "estimatedDuration": (energy_balls or DIFFICULTY_ENERGY[difficulty]) * 15,
            "aiGenerated": True,
        }
