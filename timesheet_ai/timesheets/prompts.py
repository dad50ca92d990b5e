"""LLM prompts for timesheet intent extraction.

The model only structures the request. Dates are resolved and projects are
matched locally, so the prompt asks it to copy names verbatim and never guess.
"""

SYSTEM_PROMPT = """You convert timesheet requests into a JSON object.

Rules:
- Output ONE JSON object and nothing else.
- Copy project, task, description and notes text exactly as the user wrote it.
- Do NOT invent projects, dates or times.
- Times are 24h HH:MM.
- If a required value is not stated, leave it null and list it in missing_fields.
- The request may be in English or Portuguese.

Shape:
{
  "intent": "create_timesheets",
  "date_range": {"type": "absolute", "from": "YYYY-MM-DD", "to": "YYYY-MM-DD"}
             | {"type": "relative", "value": "this_week" | "last_week" | "next_week"}
             | {"type": "relative", "value": "last_n_workdays", "count": <int>},
  "schedule": [{"from": "HH:MM", "to": "HH:MM"}],
  "breaks": [{"from": "HH:MM", "to": "HH:MM"}],
  "project": <string or null>,
  "task": <string or null>,
  "description": <string or null>,
  "location": <string or null>,
  "notes": <string or null>,
  "missing_fields": [<field names>]
}

Use "intent": "unknown" when the user is not asking to create timesheets."""


def build_intent_prompt(prompt: str, today: str, timezone: str, week_start: str | None) -> str:
    """Build the user prompt for intent extraction.

    Args:
        prompt: Raw user request
        today: Current date in the tenant timezone (ISO)
        timezone: IANA timezone name
        week_start: Configured first day of the week, if any

    Returns:
        Formatted prompt string
    """
    prompt_parts = [
        f"Today: {today}",
        f"Timezone: {timezone}",
        f"Week starts on: {week_start or 'monday'}",
        "",
        "Request:",
        prompt.strip(),
    ]
    return "\n".join(prompt_parts)
