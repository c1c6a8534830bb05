"""
Agent base class and the AgentResult envelope
Event Intelligence Scoring Engine

Every scoring stage is an Agent: `run()` holds the math, `execute()` times the
call and turns any failure into an unsuccessful AgentResult carrying an error
code, so the pipeline can decide whether to stop.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Dict
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging

from config.settings import Settings, settings as default_settings
from models.errors import ScoringEngineError

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


@dataclass
class AgentResult:
    """What one agent call produced, or why it failed."""
    agent_name: str
    success: bool
    data: Any = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    @property
    def code(self) -> Optional[str]:
        return self.metadata.get("code")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent": self.agent_name,
            "success": self.success,
            "error": self.error,
            "code": self.code,
            "duration_seconds": self.duration_seconds,
        }

    def __repr__(self):
        status = "✅" if self.success else f"❌ [{self.code}]"
        dur = f" ({self.duration_seconds:.3f}s)" if self.duration_seconds else ""
        return f"{status} {self.agent_name}{dur}"


class Agent(ABC):
    """
    One scoring stage. Subclasses implement `run(data)`.

    Agents keep only their (immutable) settings, so the same instance can
    score any number of batches.
    """

    def __init__(self, name: str, settings: Optional[Settings] = None):
        self.name = name
        self.settings = settings or default_settings
        self.logger = logging.getLogger(f"agent.{name}")

    @abstractmethod
    def run(self, data: Any) -> Any:
        raise NotImplementedError

    def execute(self, data: Any) -> AgentResult:
        """
        Call `run()` and wrap the outcome.

        Engine errors (bad input, malformed records) are expected and logged
        as a single WARNING line with their code. Anything else is a bug and
        is logged with its traceback under UNEXPECTED_ERROR.
        """
        started_at = datetime.now(timezone.utc)
        self.logger.info(f"[{self.name}] Starting...")
        try:
            output = self.run(data)
        except ScoringEngineError as e:
            self.logger.warning(f"[{self.name}] Rejected input ({e.code}): {e}")
            return self._failure(e, e.code, started_at)
        except Exception as e:
            self.logger.exception(f"[{self.name}] Failed: {e}")
            return self._failure(e, UNEXPECTED_ERROR, started_at)

        result = AgentResult(
            agent_name=self.name,
            success=True,
            data=output,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
        self.logger.info(f"[{self.name}] Completed in {result.duration_seconds:.3f}s")
        return result

    def _failure(self, error: Exception, code: str, started_at: datetime) -> AgentResult:
        return AgentResult(
            agent_name=self.name,
            success=False,
            error=str(error),
            metadata={"error_type": type(error).__name__, "code": code},
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )

    def __repr__(self):
        return f"<Agent: {self.name}>"
