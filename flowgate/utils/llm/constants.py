"""Constants for the LLM module."""

# Maximum prompt length (chars) for sanitization.
MAX_PROMPT_LENGTH = 8000

# Default timeout for cloud API providers (Gemini, OpenAI), seconds.
DEFAULT_API_TIMEOUT = 30.0

# Local inference is slower, especially while the model loads into memory.
OLLAMA_TIMEOUT = 120.0

DEFAULT_MODELS = {
    "gemini": "gemini-2.0-flash",
    "openai": "gpt-4o-mini",
    "ollama": "llama3.2",
}

JSON_ONLY_SUFFIX = "Respond with valid JSON only, no markdown or explanation."
