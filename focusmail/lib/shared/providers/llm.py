from functools import lru_cache

from google import genai


@lru_cache(maxsize=8)
def get_llm_provider(api_key: str) -> genai.Client:
    """Returns a Gemini client for the API key, reusing one per key"""
    if not api_key:
        raise ValueError("Gemini API key is not configured")
    return genai.Client(api_key=api_key)
