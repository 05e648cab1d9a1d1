from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_google_genai import ChatGoogleGenerativeAI, GoogleGenerativeAIEmbeddings

from chatapi.core.errors import ConfigurationError
from chatapi.core.settings import Settings

if TYPE_CHECKING:
    from chatapi.ai.agent import AgentSettings

# Gemini model ids by short name.
GOOGLE_MODELS = {
    "gemini_flash": "gemini-2.5-flash",
    "gemini_flash_lite": "gemini-2.5-flash-lite",
    "gemini_pro": "gemini-2.5-pro",
}


def effective_api_key(settings: Settings) -> str:
    # Prefer a single configured key. If both are set, GOOGLE_API_KEY wins.
    key = (settings.google_api_key or "").strip() or (settings.gemini_api_key or "").strip()
    if not key:
        raise ConfigurationError("Missing Gemini API key. Set GOOGLE_API_KEY (preferred) or GEMINI_API_KEY.")
    return key


def resolve_model_name(name: str) -> str:
    """Accept either a short catalogue name or a raw Gemini model id."""
    return GOOGLE_MODELS.get(name, name)


def build_chat_model(agent_settings: "AgentSettings", *, api_key: str) -> ChatGoogleGenerativeAI:
    kwargs = dict(
        model=resolve_model_name(agent_settings.model),
        api_key=api_key,
        temperature=float(agent_settings.temperature),
        top_p=float(agent_settings.top_p),
        top_k=int(agent_settings.top_k),
        max_output_tokens=int(agent_settings.max_output_tokens),
        max_retries=int(agent_settings.max_retries),
    )
    # Penalties are only sent when set; the neutral value is the provider default.
    if agent_settings.frequency_penalty:
        kwargs["frequency_penalty"] = float(agent_settings.frequency_penalty)
    if agent_settings.presence_penalty:
        kwargs["presence_penalty"] = float(agent_settings.presence_penalty)
    if agent_settings.seed is not None:
        kwargs["seed"] = int(agent_settings.seed)
    return ChatGoogleGenerativeAI(**kwargs)


def build_embeddings(settings: Settings) -> GoogleGenerativeAIEmbeddings:
    return GoogleGenerativeAIEmbeddings(model=settings.embedding_model, google_api_key=effective_api_key(settings))
