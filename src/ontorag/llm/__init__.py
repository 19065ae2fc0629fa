"""LLM integration — Gemini API and Ollama fallback."""

from ontorag.llm.client import LLMCompletionService, LLMResponse, generate_answer

__all__ = ["LLMCompletionService", "LLMResponse", "generate_answer"]
