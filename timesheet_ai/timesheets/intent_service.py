"""AI collaborator that pre-structures free-text timesheet requests.

The service returns raw model text; turning it into an Intent (and refusing
text that is not JSON) is the intent parser's job.
"""

from typing import Protocol

from loguru import logger
from pydantic import BaseModel
from pydantic_ai import Agent

from timesheet_ai.config.settings import settings
from timesheet_ai.core.llm import get_model
from timesheet_ai.timesheets.clock import Clock
from timesheet_ai.timesheets.errors import IntentServiceError
from timesheet_ai.timesheets.prompts import SYSTEM_PROMPT, build_intent_prompt


class IntentServiceResult(BaseModel):
    success: bool
    response: str | None = None
    error: str | None = None


class IntentService(Protocol):
    def parse(self, prompt: str, timezone: str, week_start: str | None = None) -> IntentServiceResult: ...


class TimesheetIntentService:
    """pydantic-ai backed IntentService."""

    def __init__(self, model_name: str | None = None, clock: Clock | None = None):
        self.model_name = model_name or settings.intent_model
        self.clock = clock or Clock()

    def _complete(self, user_prompt: str) -> str:
        try:
            agent = Agent(
                model=get_model("openai", self.model_name),
                system_prompt=SYSTEM_PROMPT,
                output_type=str,
            )
            result = agent.run_sync(user_prompt)
        except Exception as e:
            raise IntentServiceError(f"Intent model call failed: {type(e).__name__}: {e}") from e
        return str(result.output)

    def parse(self, prompt: str, timezone: str, week_start: str | None = None) -> IntentServiceResult:
        if not prompt.strip():
            return IntentServiceResult(success=False, error="Prompt is required.")

        user_prompt = build_intent_prompt(
            prompt,
            today=self.clock.today(timezone).isoformat(),
            timezone=timezone,
            week_start=week_start,
        )
        logger.debug(
            "Calling intent model",
            model=self.model_name,
            prompt_length=len(prompt),
        )

        try:
            response = self._complete(user_prompt)
        except IntentServiceError as e:
            logger.warning(f"Intent service failed: {e}", model=self.model_name)
            return IntentServiceResult(success=False, error=str(e))

        logger.debug("Intent model responded", response_length=len(response))
        return IntentServiceResult(success=True, response=response)
