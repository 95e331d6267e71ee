"""
In-memory storage for fitted models served by the API
"""
import uuid
from datetime import datetime, timedelta
from typing import Dict, Optional

from scorelab.services.modeling import FittedModel
from scorelab.services.translation import ParsedModel, parse_model


class ModelStore:
    """In-memory model storage with TTL"""

    def __init__(self, ttl_hours: int = 24):
        self.models: Dict[str, FittedModel] = {}
        self.parsed: Dict[str, ParsedModel] = {}
        self.metadata: Dict[str, dict] = {}
        self.ttl_hours = ttl_hours

    def put(self, fitted: FittedModel, metadata: Optional[dict] = None) -> str:
        """Store a fitted model and return its id"""
        model_id = uuid.uuid4().hex
        self.models[model_id] = fitted
        self.parsed[model_id] = parse_model(fitted)
        self.metadata[model_id] = {
            "created_at": datetime.now(),
            "last_accessed": datetime.now(),
            "response": fitted.response,
            "n_obs": fitted.n_obs,
            **(metadata or {}),
        }
        return model_id

    def get(self, model_id: str) -> Optional[FittedModel]:
        """Retrieve model and update access time"""
        if model_id in self.models:
            self.metadata[model_id]["last_accessed"] = datetime.now()
            return self.models[model_id]
        return None

    def get_parsed(self, model_id: str) -> Optional[ParsedModel]:
        if model_id in self.parsed:
            self.metadata[model_id]["last_accessed"] = datetime.now()
            return self.parsed[model_id]
        return None

    def get_metadata(self, model_id: str) -> Optional[dict]:
        return self.metadata.get(model_id)

    def exists(self, model_id: str) -> bool:
        return model_id in self.models

    def delete(self, model_id: str) -> bool:
        if model_id not in self.models:
            return False
        del self.models[model_id]
        self.parsed.pop(model_id, None)
        self.metadata.pop(model_id, None)
        return True

    def cleanup_expired(self) -> int:
        """Remove expired models"""
        now = datetime.now()
        expired = [
            model_id
            for model_id, meta in self.metadata.items()
            if now - meta["last_accessed"] > timedelta(hours=self.ttl_hours)
        ]
        for model_id in expired:
            self.delete(model_id)
        return len(expired)

    def get_stats(self) -> dict:
        return {"active_models": len(self.models)}
