"""Configuration module using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field, BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class PromptConfig(BaseModel):
    max_questions_per_turn: int = Field(
        default=3, description="Upper bound on questions the assistant asks per turn"
    )
    response_tone: Literal["formal", "friendly"] = Field(
        default="friendly", description="Tone of assistant responses"
    )


class WizardConfig(BaseModel):
    redirect_delay_seconds: float = Field(
        default=1.5, description="Pause before showing the new dispute"
    )
    description_min_length: int = Field(
        default=20, description="Minimum length of the dispute description"
    )
    storage_bucket: str = Field(
        default="proofbundle", description="Bucket that receives evidence files"
    )


class PdfConfig(BaseModel):
    cloudconvert_base_url: str = Field(
        default="https://api.cloudconvert.com/v2", description="CloudConvert API root"
    )
    poll_attempts: int = Field(default=20, description="Export task status checks")
    poll_interval_seconds: float = Field(
        default=1.5, description="Delay between export task status checks"
    )


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # LLM Configuration
    llm_provider: Literal["openai", "gemini", "groq"] = Field(
        default="openai", description="LLM provider to use"
    )
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openai_model: str = Field(default="gpt-4-turbo", description="OpenAI model to use")
    gemini_api_key: str = Field(default="", description="Google Gemini API key")
    gemini_model: str = Field(
        default="gemini-1.5-flash", description="Gemini model to use"
    )
    groq_api_key: str = Field(default="", description="Groq API key")
    groq_model: str = Field(
        default="openai/gpt-oss-120b", description="Groq model to use"
    )
    letter_temperature: float = Field(
        default=0.7, description="Sampling temperature for dispute letters"
    )

    prompt_config: PromptConfig = PromptConfig()
    wizard_config: WizardConfig = WizardConfig()
    pdf_config: PdfConfig = PdfConfig()

    # Backend
    storage_backend: Literal["local", "supabase"] = Field(
        default="local", description="Where disputes and evidence are stored"
    )
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_key: str = Field(default="", description="Supabase anon or service key")
    supabase_access_token: str = Field(
        default="", description="Logged-in user JWT sent instead of the project key"
    )
    cloudconvert_api_key: str = Field(default="", description="CloudConvert API key")
    jurisdiction: str = Field(
        default="unknown", description="Country code recorded on new disputes"
    )

    # Paths
    data_dir: Path = Field(default=Path("data"), description="Directory for data files")
    audit_log_dir: Path = Field(default=Path("logs"), description="Audit log directory")
    audit_use_presidio: bool = Field(
        default=True, description="Run Presidio NLP detection on audit entries"
    )
    log_level: str = Field(default="INFO", description="Logging level")

    default_user_id: str | None = Field(
        default=None, description="User ID used when no login is given"
    )

    @property
    def exports_dir(self) -> Path:
        """Path to generated PDF letters."""
        return self.data_dir / "exports"


# Global settings instance
settings = Settings()
