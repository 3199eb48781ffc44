from pydantic import BaseModel, Field, model_validator
from typing import Literal

from docledger.merkle.tree import DEFAULT_EXCLUDE

AUDIENCES = ("engineering", "product", "executive")


class LLMSettings(BaseModel):
    provider: Literal["anthropic", "openai"] = "anthropic"
    model: str = "claude-haiku-4-5-20251001"
    api_key_env: str = "ANTHROPIC_API_KEY"
    max_tokens: int = Field(default=4000, gt=0)
    temperature: float = Field(default=0.3, ge=0)
    timeout: int = Field(default=60, gt=0)
    base_url: str | None = None


class RetrySettings(BaseModel):
    max_retries: int = Field(default=3, ge=0)
    initial_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=60.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1)


class BundleSettings(BaseModel):
    size: int = Field(default=5, gt=0)
    max_workers: int = Field(default=4, gt=0)


class AudienceSettings(BaseModel):
    enabled: bool = True


class AudiencesSettings(BaseModel):
    engineering: AudienceSettings = Field(default_factory=AudienceSettings)
    product: AudienceSettings = Field(default_factory=AudienceSettings)
    executive: AudienceSettings = Field(default_factory=AudienceSettings)

    @model_validator(mode="after")
    def _engineering_required(self) -> "AudiencesSettings":
        # Product and executive summaries are derived from the engineering one
        if not self.engineering.enabled:
            raise ValueError("audiences.engineering cannot be disabled")
        return self

    def enabled(self) -> list[str]:
        return [name for name in AUDIENCES if getattr(self, name).enabled]


class StateSettings(BaseModel):
    dir: str = ".docs"
    manifest: str = "manifest.json"
    staging: str = "staging.json"
    lock: str = "update.lock"


class LedgerConfig(BaseModel):
    exclude: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    llm: LLMSettings = Field(default_factory=LLMSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    bundle: BundleSettings = Field(default_factory=BundleSettings)
    audiences: AudiencesSettings = Field(default_factory=AudiencesSettings)
    state: StateSettings = Field(default_factory=StateSettings)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
