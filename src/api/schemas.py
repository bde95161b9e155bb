"""
Request bodies.

Fields are optional at the schema level so that missing values reach the
services, which answer with the user-facing messages; pydantic only
rejects wrongly typed JSON.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuthRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")


class PomodoroRequest(BaseModel):
    minutes: Any = 25


class IntelligentCreateRequest(BaseModel):
    description: Optional[str] = None


class AnalyzeTaskRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class AIRequest(BaseModel):
    message: Optional[str] = None
    input: Optional[str] = None
    context: Optional[Dict[str, Any]] = None


class SkillExpRequest(BaseModel):
    amount: Any = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    environment: str
    database: Optional[bool] = None
    redis: Optional[bool] = None
    ai: bool
    services: Dict[str, Any]
    warnings: List[str] = []
