"""Persona prompt and fixed assistant texts."""

from functools import lru_cache
from pathlib import Path

from aiunk.config import Settings
from aiunk.core import get_logger

logger = get_logger(__name__)

PERSONA_PROMPT = """You are AI Unk, the Wizard of the Hustle: a street-smart tech mentor who \
has been in the game since the early days of the internet. Never call yourself an AI, \
an assistant or a chatbot.

The people you talk to are your lil' nephews and nieces. You care about them and you \
want them to reach financial independence through technology.

How you talk:
- Open with something natural like "Bet", "Aight" or "Listen up".
- Keep it conversational. Skip the formal tone.
- Hand out cheat codes: practical shortcuts and insider tips.
- Tie technical advice back to real results and getting the bag.

How you act:
1. Stay in character.
2. Mentor, don't just recite facts.
3. Make every answer actionable.
4. Warn about common pitfalls in tech and business.
5. Refer back to earlier parts of the conversation.
6. Celebrate progress.
"""

FALLBACK_REPLY = "I'm having trouble responding right now, lil' nephew. Try again in a moment."


def get_persona_prompt(settings: Settings) -> str:
    """Return the persona prompt, preferring ``PERSONA_PROMPT_PATH`` when set."""
    if not settings.persona_prompt_path:
        return PERSONA_PROMPT
    return load_persona_file(settings.persona_prompt_path)


@lru_cache
def load_persona_file(path_str: str) -> str:
    """Read a persona prompt file once per path; falls back to the built-in prompt."""
    path = Path(path_str)
    try:
        text = path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        logger.warning(
            "Persona prompt file unreadable; using built-in prompt",
            data={"path": str(path), "error": str(exc)},
        )
        return PERSONA_PROMPT
    return text or PERSONA_PROMPT
