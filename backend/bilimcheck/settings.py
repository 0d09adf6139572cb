from typing import Dict

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# Assessment backend (subjects, test creation, scoring, history)
	api_base_url: str = Field(default="https://bilimler-bellesiwi.kozqaras.xyz", validation_alias="BILIM_API_BASE_URL")
	http_timeout: float = Field(default=30.0, validation_alias="BILIM_HTTP_TIMEOUT")
	questions_count: int = Field(default=30, validation_alias="BILIM_QUESTIONS_COUNT")
	results_page_size: int = Field(default=15, validation_alias="BILIM_RESULTS_PAGE_SIZE")
	# Seconds before the cursor moves on after an answer; 0 advances immediately
	auto_advance_delay: float = Field(default=0.3, validation_alias="BILIM_AUTO_ADVANCE_DELAY")

	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# Study plans are written in this language unless the subject is itself a language
	plan_language: str = Field(default="Karakalpak", validation_alias="BILIM_PLAN_LANGUAGE")
	# Subject name -> language the plan for that subject should be written in
	language_subjects: Dict[str, str] = Field(
		default_factory=lambda: {"English": "English", "Russian": "Russian", "Ingliz tili": "English", "Rus tili": "Russian"},
		validation_alias="BILIM_LANGUAGE_SUBJECTS",
	)

	# TTF font with Cyrillic/Latin extended coverage for the PDF export
	export_font_path: str = Field(default="static/DejaVuSans.ttf", validation_alias="BILIM_EXPORT_FONT_PATH")

	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
