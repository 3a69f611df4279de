"""
Natural-language to shell command assistant.

This package turns a plain-language request into a single shell command using
one of several LLM providers (Anthropic, OpenAI or a local Ollama gateway),
shows it with an explanation, runs it on confirmation and, when the command
fails, feeds its output back to the model to get a fix.
"""

__version__ = "0.3.0"
