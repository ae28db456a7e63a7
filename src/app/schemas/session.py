from __future__ import annotations

from pydantic import BaseModel


class SessionConfigResponse(BaseModel):
    anamSessionToken: str
    elevenLabsAgentId: str
