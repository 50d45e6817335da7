import json
import os

from openai import OpenAI


DEFAULT_MODEL = "gpt-4o-mini"
JSON_ONLY_SUFFIX = "\n\nCRITICAL: Return ONLY valid JSON. No other text, no markdown, no explanation."


def is_ai_configured():
    return bool(os.environ.get("OPENAI_API_KEY"))


def get_openai_client() -> OpenAI:
    api_key = os.environ.get("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is not set")
    return OpenAI(api_key=api_key)


def parse_json_object(response_text):
    """Return the first JSON object found in model output, or None.

    Models sometimes wrap the object in prose or code fences.
    """
    if not response_text:
        return None
    decoder = json.JSONDecoder()
    start = response_text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(response_text, start)
        except json.JSONDecodeError:
            start = response_text.find("{", start + 1)
            continue
        if isinstance(value, dict):
            return value
        start = response_text.find("{", start + 1)
    return None


def call_chat_text(
    system_prompt,
    user_content,
    *,
    max_tokens=1500,
    temperature=0.1,
    json_only=False,
    logger=None,
):
    """One chat completion; returns the message text or None on API failure."""
    prompt = system_prompt + (JSON_ONLY_SUFFIX if json_only else "")
    try:
        client = get_openai_client()
        response = client.chat.completions.create(
            model=os.environ.get("OPENAI_MODEL", DEFAULT_MODEL),
            messages=[
                {"role": "system", "content": prompt},
                {"role": "user", "content": user_content},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content
    except Exception as exc:
        if logger:
            logger.warning("OpenAI API error: %s", exc)
        return None


def call_chat_json(
    system_prompt,
    user_content,
    *,
    max_tokens=1500,
    temperature=0.1,
    retries=1,
    logger=None,
):
    """Ask for JSON, retrying in strict JSON-only mode when the reply does not parse."""
    for attempt in range(max(0, int(retries)) + 1):
        response_text = call_chat_text(
            system_prompt,
            user_content,
            max_tokens=max_tokens,
            temperature=temperature,
            json_only=attempt > 0,
            logger=logger,
        )
        parsed = parse_json_object(response_text)
        if parsed is not None:
            return parsed
    return None
