#!/usr/bin/env python3
"""
Remote AI providers
Gemini (primary) and Groq (secondary) text completion for coaching replies
"""

import logging
import threading

from google import genai
from openai import OpenAI

from fallback_coach import GOAL_PHRASES

logger = logging.getLogger(__name__)

GROQ_BASE_URL = 'https://api.groq.com/openai/v1'
DEFAULT_GROQ_MODEL = 'llama-3.3-70b-versatile'

# Tried in order after GEMINI_MODEL; names get retired so keep a few around
GEMINI_MODEL_CANDIDATES = [
    'gemini-2.5-flash',
    'gemini-2.0-flash',
    'gemini-1.5-flash',
    'gemini-1.5-flash-latest',
    'gemini-1.5-flash-8b',
    'gemini-1.5-pro',
    'gemini-1.5-pro-latest',
]


class ProviderUnavailable(Exception):
    """A provider could not produce a reply (no key, network error, upstream rejection)"""


class LazyClient:
    """Build an SDK client on first use, exactly once"""

    def __init__(self, factory):
        self._factory = factory
        self._client = None
        self._lock = threading.Lock()

    def get(self):
        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = self._factory()
        return self._client


def is_model_not_found(err):
    """
    Decide whether a Gemini error means "this model name is not available"

    The SDK's APIError carries the HTTP status in `code`; only when that is
    missing do we fall back to matching the message text.
    """
    code = getattr(err, 'code', None)
    if isinstance(code, int):
        return code == 404
    msg = str(err).lower()
    return 'not found' in msg or 'not supported' in msg or '404' in msg


# ============================================================================
# Prompts
# ============================================================================

GEMINI_LEVELS = {
    'beginner': 'beginner (new to fitness)',
    'intermediate': 'intermediate (some experience)',
    'advanced': 'advanced (experienced athlete)',
}


def build_gemini_prompt(user_message, profile):
    """Trainer + nutritionist prompt with the full profile block"""
    goal = GOAL_PHRASES.get(profile.fitness_goal, profile.fitness_goal)
    level = GEMINI_LEVELS.get(profile.fitness_level, profile.fitness_level)
    target = profile.target_weight or 'Not specified'

    return f"""
You are an expert personal fitness trainer and nutritionist.
Provide personalized, safe, and actionable advice.

USER PROFILE:
- Name: {profile.name}
- Age: {profile.age} years old
- Gender: {profile.gender}
- Weight: {profile.weight} kg
- Height: {profile.height} cm
- Target Weight: {target} kg
- Goal: {goal}
- Level: {level}

USER QUESTION:
{user_message}

INSTRUCTIONS:
1. Give structured, practical guidance.
2. Include workouts (sets/reps/duration).
3. Add nutrition advice if relevant.
4. Keep response under 300 words.
5. Be motivational and clear.
6. Adapt intensity to user's fitness level.
7. Avoid unsafe or extreme suggestions.

Respond now:
"""


def build_groq_prompt(user_message, profile):
    """Chat-style prompt: answer first, profile only when relevant"""
    goal = GOAL_PHRASES.get(profile.fitness_goal, profile.fitness_goal)
    target_line = f"- Target: {profile.target_weight}kg" if profile.target_weight else ''

    return f"""You are a knowledgeable fitness coach chatting with {profile.name}. Answer questions directly and clearly.

CRITICAL RESPONSE FORMAT:
- START with the direct answer to their exact question in the FIRST sentence
- Use **bold text** for key numbers, recommendations, or important points
- Keep total response 150-250 words max
- Only greet at the very start of a new conversation
- Use profile info ONLY when relevant to the question

AVAILABLE CONTEXT (use only if needed):
- {profile.name}, {profile.age}yo, {profile.gender}
- Goal: {goal}
- Level: {profile.fitness_level}
- Weight: {profile.weight}kg, Height: {profile.height}cm
{target_line}

USER QUESTION: {user_message}

RESPONSE STRUCTURE:
1. FIRST: Direct answer to their question (use **bold** for key info)
2. THEN: Brief explanation or context if needed
3. LAST: Actionable advice or next steps

FORMATTING EXAMPLES:
- "Aim for **150g of protein daily** for muscle gain."
- "Do **3-4 sets of 8-12 reps** for strength."
- "**30-45 minutes** of cardio, 4-5 times per week."

STYLE:
- Be conversational but concise
- Use emojis sparingly (💪 🏃 🥗)
- Skip formalities in ongoing chats
- Answer what they asked, don't over-explain

Answer directly now:"""


# ============================================================================
# Providers
# ============================================================================

class GeminiProvider:
    """Primary provider backed by the google-genai SDK"""
    name = 'gemini'

    def __init__(self, api_key=None, model=None, client_factory=None):
        self.api_key = api_key
        self.model = model
        self._client = LazyClient(client_factory or self._make_client)

    def _make_client(self):
        return genai.Client(api_key=self.api_key)

    def candidates(self):
        names = [self.model] + GEMINI_MODEL_CANDIDATES
        # Drop blanks and duplicates, keep order
        return list(dict.fromkeys(n for n in names if n))

    def generate(self, user_message, profile):
        if not self.api_key:
            raise ProviderUnavailable('GEMINI_API_KEY not set')

        prompt = build_gemini_prompt(user_message, profile)
        client = self._client.get()

        last_err = None
        for model_name in self.candidates():
            try:
                response = client.models.generate_content(model=model_name, contents=prompt)
            except Exception as err:
                last_err = err
                if is_model_not_found(err):
                    logger.warning("Gemini model '%s' unavailable, trying next fallback...", model_name)
                    continue
                break  # Other errors: stop retrying
            text = response.text
            if not text:
                raise ProviderUnavailable(f"Gemini model '{model_name}' returned an empty response")
            return text

        raise ProviderUnavailable(f"Gemini API Error: {last_err or 'no model candidates'}") from last_err


class GroqProvider:
    """Secondary provider - Groq's OpenAI-compatible chat completions endpoint"""
    name = 'groq'

    def __init__(self, api_key=None, model=None, client_factory=None):
        self.api_key = api_key
        self.model = model or DEFAULT_GROQ_MODEL
        self._client = LazyClient(client_factory or self._make_client)

    def _make_client(self):
        return OpenAI(api_key=self.api_key, base_url=GROQ_BASE_URL)

    def generate(self, user_message, profile):
        if not self.api_key:
            raise ProviderUnavailable('GROQ_API_KEY not set')

        prompt = build_groq_prompt(user_message, profile)
        try:
            response = self._client.get().chat.completions.create(
                model=self.model,
                messages=[{'role': 'user', 'content': prompt}],
                temperature=0.7,
                max_tokens=500,
                top_p=1,
            )
        except Exception as err:
            raise ProviderUnavailable(f"Groq API Error: {err}") from err

        text = response.choices[0].message.content
        if not text:
            raise ProviderUnavailable('Groq returned an empty response')
        return text
