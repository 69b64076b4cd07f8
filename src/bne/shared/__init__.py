"""Shared infrastructure: logging and LLM providers."""
