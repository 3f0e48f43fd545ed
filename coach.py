#!/usr/bin/env python3
"""
AI coach
Runs a user's message through an ordered chain of providers and returns the
first reply. The local fallback coach always ends the chain, so a reply is
always produced.
"""

import logging
from enum import Enum

import fallback_coach
from providers import GeminiProvider, GroqProvider

logger = logging.getLogger(__name__)

WORKOUT_PLAN_MESSAGE = 'Create a detailed weekly workout plan for me.'
NUTRITION_ADVICE_MESSAGE = 'Give me personalized nutrition and diet advice.'


class ProviderMode(str, Enum):
    GEMINI = 'gemini'
    GROQ = 'groq'
    STUB = 'stub'

    @classmethod
    def parse(cls, value):
        """Resolve AI_PROVIDER; blank or unknown values get the default mode"""
        if not value:
            return cls.GEMINI
        try:
            return cls(value.strip().lower())
        except ValueError:
            logger.warning("Unknown AI_PROVIDER '%s', using '%s'", value, cls.GEMINI.value)
            return cls.GEMINI


# Provider names tried for each mode, in order
MODE_SEQUENCES = {
    ProviderMode.GEMINI: ('gemini', 'groq', 'stub'),
    ProviderMode.GROQ: ('groq', 'stub'),
    ProviderMode.STUB: ('stub',),
}


class LocalProvider:
    """Templated reply built from the profile - no network, never fails"""
    name = 'stub'

    def generate(self, user_message, profile):
        return fallback_coach.generate_fitness_response(user_message, profile)


class CoachChain:
    """Try each provider in turn; the first one to answer wins"""

    def __init__(self, providers, fallback=None):
        self.fallback = fallback or LocalProvider()
        self.providers = list(providers)
        # The local provider must always be last
        if not self.providers or self.providers[-1] is not self.fallback:
            self.providers = [p for p in self.providers if p is not self.fallback] + [self.fallback]

    @property
    def names(self):
        return [p.name for p in self.providers]

    def reply(self, user_message, profile):
        for provider in self.providers[:-1]:
            try:
                return provider.generate(user_message, profile)
            except Exception as e:
                logger.warning("%s provider failed: %s", provider.name, e)
        return self.fallback.generate(user_message, profile)

    def generate_workout_plan(self, profile):
        return self.reply(WORKOUT_PLAN_MESSAGE, profile)

    def generate_nutrition_advice(self, profile):
        return self.reply(NUTRITION_ADVICE_MESSAGE, profile)


def build_chain(mode, providers=None):
    """
    Build the chain for a provider mode

    `providers` maps provider name -> provider; the local provider is always
    available, remote ones are usually built from config by create_providers.
    """
    mode = ProviderMode.parse(mode) if not isinstance(mode, ProviderMode) else mode
    available = dict(providers or {})
    fallback = available.pop('stub', None) or LocalProvider()

    chain = []
    for name in MODE_SEQUENCES[mode]:
        if name == 'stub':
            chain.append(fallback)
        elif name in available:
            chain.append(available[name])
        else:
            logger.warning("Provider '%s' is not configured, skipping", name)

    logger.info("AI provider chain: %s", ' -> '.join(p.name for p in chain))
    return CoachChain(chain, fallback=fallback)


def create_providers(config):
    """Construct the remote providers once, from app config"""
    return {
        'gemini': GeminiProvider(
            api_key=config.get('GEMINI_API_KEY'),
            model=config.get('GEMINI_MODEL'),
        ),
        'groq': GroqProvider(
            api_key=config.get('GROQ_API_KEY'),
            model=config.get('GROQ_MODEL'),
        ),
    }
