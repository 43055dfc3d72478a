"""Inference modules for LLM-based SQL generation."""

from tabletalk.inference.llm_engine import LLMEngine
from tabletalk.inference.prompts import PromptComposer, PromptTemplates, extract_sql
from tabletalk.inference.generator import SQLGenerator

__all__ = ["LLMEngine", "PromptComposer", "PromptTemplates", "extract_sql", "SQLGenerator"]
