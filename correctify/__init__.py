"""Correctify - AI-powered text correction from a global shortcut.

Select text anywhere, press the shortcut, and get it back corrected by the
LLM provider of your choice (OpenAI, Anthropic, Mistral or OpenRouter).
The same correction core serves the command line and an HTTP endpoint.
"""

__version__ = "1.0.0"
__author__ = "Correctify Project"
__license__ = "MIT"

# Package metadata
__all__ = [
    "__version__",
    "__author__",
    "__license__",
]
