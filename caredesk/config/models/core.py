# caredesk/config/models/core.py
from typing import List, Literal

from pydantic import BaseModel, ConfigDict


class LoggingConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    json_enabled: bool = False
    service_name: str = "caredesk-classifier"
    debug_loggers: List[str] = []

    @property
    def format(self) -> Literal["text", "json"]:
        return "json" if self.json_enabled else "text"
