"""Configuration schema using Pydantic."""

from pathlib import Path
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AssistantConfig(BaseModel):
    """Who the assistant is inside a conversation."""
    name: str = "Claude"
    display_name: str = "Claude Sullivan"
    # Names (and common typos) that count as addressing the assistant in a group
    aliases: list[str] = Field(default_factory=lambda: [
        "claude", "cluade", "cloude", "cladue", "claud", "ckaude", "sullivan",
    ])
    contact_card_interval: int = 5  # Share the contact card every N messages


class ModelsConfig(BaseModel):
    """Model selection for each kind of provider call."""
    chat: str = "anthropic/claude-sonnet-4-20250514"
    fast: str = "anthropic/claude-3-5-haiku-20241022"  # triage + effect filler
    image: str = "dall-e-3"
    image_size: str = "1024x1024"
    transcription: str = "whisper-1"
    max_tokens: int = 1024
    temperature: float = 0.7
    web_search: bool = True


class ProviderConfig(BaseModel):
    """LLM provider credentials."""
    api_key: str = ""
    api_base: str | None = None


class ProvidersConfig(BaseModel):
    """Configuration for the upstream providers."""
    anthropic: ProviderConfig = Field(default_factory=ProviderConfig)
    openai: ProviderConfig = Field(default_factory=ProviderConfig)  # images + transcription


class LinqConfig(BaseModel):
    """Linq Blue messaging API configuration."""
    api_base: str = "https://api.linqapp.com/api/partner/v3"
    token: str = ""
    phone_number: str = ""  # The bridge's own number; inbound from it is ignored
    timeout: float = 30.0


class StoreConfig(BaseModel):
    """Memory store configuration."""
    backend: str = "file"  # "file" or "memory"
    data_dir: str = "~/.tapback/data"
    history_limit: int = 20
    conversation_ttl: int = 60 * 60  # seconds


class GatewayConfig(BaseModel):
    """Webhook server configuration."""
    host: str = "0.0.0.0"
    port: int = 3000


class DispatchConfig(BaseModel):
    """Pacing for outbound messages."""
    pace_min: float = 0.4
    pace_max: float = 0.8
    image_delay: float = 0.3


class Config(BaseSettings):
    """Root configuration for tapback."""
    model_config = SettingsConfigDict(env_prefix="TAPBACK_", env_nested_delimiter="__")

    assistant: AssistantConfig = Field(default_factory=AssistantConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    linq: LinqConfig = Field(default_factory=LinqConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)

    @property
    def data_path(self) -> Path:
        """Get expanded store data path."""
        return Path(self.store.data_dir).expanduser()
