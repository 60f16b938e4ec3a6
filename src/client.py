"""AI classifier client factory for tabgrouper.

The API key may come from config.json or, to keep secrets out of that file,
from the environment via python-dotenv.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv

from adapters.chat_completion_client import ChatCompletionClient
import settings


def api_key_from_env() -> Optional[str]:
    """Return the API key from the environment or a local .env file."""

    load_dotenv()
    return os.getenv(settings.API_KEY_ENV) or None


def build_client() -> ChatCompletionClient:
    """Create the chat-completion client used by the AI stage.

    Endpoint, model and key are read per request from the current settings,
    so the client itself holds no credentials.
    """

    logging.getLogger(__name__).info("Initializing AI classifier client")
    return ChatCompletionClient(user_agent="tabgrouper")
