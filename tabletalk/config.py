"""
Configuration management for TableTalk.

Handles LLM settings, HTTP server options and retrieval-context limits.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import os

import yaml

from tabletalk.core.errors import ConfigError


GROQ_BASE_URL = "https://api.groq.com/openai/v1"


@dataclass
class LLMConfig:
    """LLM configuration for SQL generation."""
    provider: str = "groq"
    model: str = "llama-3.3-70b-versatile"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.1  # Near-deterministic SQL
    max_tokens: int = 1000
    timeout: int = 60

    def __post_init__(self):
        if not self.api_key:
            if self.provider == "groq":
                self.api_key = os.environ.get("GROQ_API_KEY")
            else:
                self.api_key = os.environ.get("OPENAI_API_KEY")
        if self.base_url is None and self.provider == "groq":
            self.base_url = GROQ_BASE_URL


@dataclass
class ServerConfig:
    """HTTP API configuration."""
    host: str = "127.0.0.1"
    port: int = 3001
    cors_origin: str = "*"
    max_content_length: int = 50 * 1024 * 1024  # 50MB request bodies
    debug: bool = False

    def __post_init__(self):
        if os.environ.get("PORT"):
            self.port = int(os.environ["PORT"])
        if os.environ.get("FRONTEND_URL"):
            self.cors_origin = os.environ["FRONTEND_URL"]


@dataclass
class RAGConfig:
    """Retrieval-context limits."""
    sample_rows: int = 10  # Rows shipped to the generator
    prompt_rows: int = 3  # Rows embedded verbatim in the prompt
    context_values: int = 5  # Sample values per context string
    max_distinct_values: int = 10
    relevance_values: int = 5  # Distinct values checked against the question


@dataclass
class TableTalkConfig:
    """Main configuration container."""
    llm: LLMConfig = field(default_factory=LLMConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    rag: RAGConfig = field(default_factory=RAGConfig)
    default_table: str = "data"
    verbose: bool = False

    @classmethod
    def from_yaml(cls, path: str) -> "TableTalkConfig":
        """Load configuration from YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not load config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must contain a mapping")
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "TableTalkConfig":
        """Create config from dictionary."""
        llm_data = data.get("llm", {}) or {}
        llm_config = LLMConfig(
            provider=llm_data.get("provider", "groq"),
            model=llm_data.get("model", "llama-3.3-70b-versatile"),
            api_key=llm_data.get("api_key"),
            base_url=llm_data.get("base_url"),
            temperature=llm_data.get("temperature", 0.1),
            max_tokens=llm_data.get("max_tokens", 1000),
            timeout=llm_data.get("timeout", 60),
        )

        server_data = data.get("server", {}) or {}
        server_config = ServerConfig(
            host=server_data.get("host", "127.0.0.1"),
            port=server_data.get("port", 3001),
            cors_origin=server_data.get("cors_origin", "*"),
            debug=server_data.get("debug", False),
        )

        rag_data = data.get("rag", {}) or {}
        rag_config = RAGConfig(**{
            k: rag_data[k] for k in RAGConfig.__dataclass_fields__ if k in rag_data
        })

        return cls(
            llm=llm_config,
            server=server_config,
            rag=rag_config,
            default_table=data.get("default_table", "data"),
            verbose=data.get("verbose", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary (API key omitted)."""
        return {
            "llm": {
                "provider": self.llm.provider,
                "model": self.llm.model,
                "base_url": self.llm.base_url,
                "temperature": self.llm.temperature,
                "max_tokens": self.llm.max_tokens,
            },
            "server": {
                "host": self.server.host,
                "port": self.server.port,
                "cors_origin": self.server.cors_origin,
            },
            "rag": {
                "sample_rows": self.rag.sample_rows,
                "prompt_rows": self.rag.prompt_rows,
                "context_values": self.rag.context_values,
                "max_distinct_values": self.rag.max_distinct_values,
                "relevance_values": self.rag.relevance_values,
            },
            "default_table": self.default_table,
        }
