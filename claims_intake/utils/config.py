"""Configuration management for the claims intake pipeline."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

load_dotenv()

# Placeholder shipped in .env.example; treated as "no key configured".
MISSING_API_KEY_SENTINEL = "your_bedrock_api_key_here"


@dataclass
class AIConfig:
    """Generative-AI (Amazon Bedrock Converse) configuration."""
    model_id: str = "amazon.nova-pro-v1:0"
    api_key: str = ""
    timeout: int = 60
    max_retries: int = 3
    fold_system_prompt: bool = False
    temperature: float = 0.5
    top_p: float = 0.95
    max_tokens: int = 4096
    guardrail_id: str = ""
    guardrail_version: str = ""
    disabled: bool = False

    @property
    def enabled(self) -> bool:
        """False when AI is switched off or the key is the placeholder sentinel."""
        if self.disabled:
            return False
        return self.api_key.strip() != MISSING_API_KEY_SENTINEL

    def generation_params(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topP": self.top_p,
            "maxTokens": self.max_tokens,
        }

    def safety_config(self) -> Optional[Dict[str, Any]]:
        if not self.guardrail_id:
            return None
        return {
            "guardrailIdentifier": self.guardrail_id,
            "guardrailVersion": self.guardrail_version or "DRAFT",
        }


@dataclass
class ProcessingConfig:
    """Pipeline behaviour configuration."""
    max_document_chars: int = 12000
    memo_timeout_seconds: float = 20.0
    generate_customer_response: bool = True
    generate_internal_memo: bool = True
    chat_history_limit: int = 20


@dataclass
class StorageConfig:
    """Record store configuration."""
    backend: str = "memory"
    data_dir: str = "data/records"
    sessions_collection: str = "processing_sessions"


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - [%(processing_id)s] %(message)s"
    file: str = ""


@dataclass
class Config:
    """Main configuration class."""
    aws_region: str = "us-east-1"
    ai: AIConfig = field(default_factory=AIConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: str = "config.yaml") -> "Config":
        """
        Load configuration from file and environment variables.

        Environment variables override config file values:
        - AWS_REGION
        - BEDROCK_MODEL_ID
        - BEDROCK_API_KEY / AWS_BEARER_TOKEN_BEDROCK
        - AI_DISABLED
        - MAX_DOCUMENT_CHARS
        - MEMO_TIMEOUT_SECONDS
        - STORAGE_BACKEND
        - LOG_LEVEL

        A missing config file is not an error: defaults are used.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Config instance with loaded settings
        """
        config_data: Dict[str, Any] = {}
        if Path(config_path).exists():
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}

        aws_data = config_data.get("aws", {}) or {}
        ai_data = config_data.get("ai", {}) or {}
        processing_data = config_data.get("processing", {}) or {}
        storage_data = config_data.get("storage", {}) or {}
        logging_data = config_data.get("logging", {}) or {}

        aws_region = os.getenv("AWS_REGION", aws_data.get("region", "us-east-1"))

        defaults = AIConfig()
        api_key = (
            os.getenv("BEDROCK_API_KEY")
            or os.getenv("AWS_BEARER_TOKEN_BEDROCK")
            or ai_data.get("api_key", "")
            or ""
        )
        ai_config = AIConfig(
            model_id=os.getenv("BEDROCK_MODEL_ID", ai_data.get("model_id", defaults.model_id)),
            api_key=api_key,
            timeout=int(ai_data.get("timeout", defaults.timeout)),
            max_retries=int(ai_data.get("max_retries", defaults.max_retries)),
            fold_system_prompt=bool(ai_data.get("fold_system_prompt", defaults.fold_system_prompt)),
            temperature=float(ai_data.get("temperature", defaults.temperature)),
            top_p=float(ai_data.get("top_p", defaults.top_p)),
            max_tokens=int(ai_data.get("max_tokens", defaults.max_tokens)),
            guardrail_id=ai_data.get("guardrail_id", "") or "",
            guardrail_version=str(ai_data.get("guardrail_version", "") or ""),
            disabled=_as_bool(os.getenv("AI_DISABLED", ai_data.get("disabled", False))),
        )

        proc_defaults = ProcessingConfig()
        processing_config = ProcessingConfig(
            max_document_chars=int(
                os.getenv("MAX_DOCUMENT_CHARS", processing_data.get("max_document_chars", proc_defaults.max_document_chars))
            ),
            memo_timeout_seconds=float(
                os.getenv(
                    "MEMO_TIMEOUT_SECONDS",
                    processing_data.get("memo_timeout_seconds", proc_defaults.memo_timeout_seconds),
                )
            ),
            generate_customer_response=bool(
                processing_data.get("generate_customer_response", proc_defaults.generate_customer_response)
            ),
            generate_internal_memo=bool(
                processing_data.get("generate_internal_memo", proc_defaults.generate_internal_memo)
            ),
            chat_history_limit=int(processing_data.get("chat_history_limit", proc_defaults.chat_history_limit)),
        )

        storage_defaults = StorageConfig()
        storage_config = StorageConfig(
            backend=os.getenv("STORAGE_BACKEND", storage_data.get("backend", storage_defaults.backend)),
            data_dir=storage_data.get("data_dir", storage_defaults.data_dir),
            sessions_collection=storage_data.get("sessions_collection", storage_defaults.sessions_collection),
        )

        log_defaults = LoggingConfig()
        logging_config = LoggingConfig(
            level=os.getenv("LOG_LEVEL", logging_data.get("level", log_defaults.level)),
            format=logging_data.get("format", log_defaults.format),
            file=logging_data.get("file", log_defaults.file) or "",
        )

        return cls(
            aws_region=aws_region,
            ai=ai_config,
            processing=processing_config,
            storage=storage_config,
            logging=logging_config,
        )


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")
