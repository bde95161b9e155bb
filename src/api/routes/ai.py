"""AI assistant endpoint: chat, suggestions and free-text parsing."""

from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_container, get_user_id
from src.api.schemas import AIRequest
from src.core.services.container import ServiceContainer

router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.post("")
async def ai_action(
    body: AIRequest,
    action: Literal["chat", "suggestions", "parse-input"] = Query(...),
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    demo = container.stores.is_demo(user_id)
    if action == "chat":
        return await container.ai.chat(body.message, body.context, demo=demo)
    if action == "suggestions":
        return await container.ai.suggestions(body.context, demo=demo)
    return await container.ai.parse_input(body.input, demo=demo)
