"""Tests for the provider chain and the remote providers."""

from types import SimpleNamespace

import pytest

from coach import (
    MODE_SEQUENCES, NUTRITION_ADVICE_MESSAGE, WORKOUT_PLAN_MESSAGE, CoachChain, LocalProvider,
    ProviderMode, build_chain,
)
from conftest import FakeProvider
from models import UserProfile
from providers import (
    GeminiProvider, GroqProvider, LazyClient, ProviderUnavailable, is_model_not_found,
)

PROFILE = UserProfile(name='Sam', age=30, gender='other', height=175, weight=80,
                      fitness_goal='endurance', fitness_level='beginner')


class FakeAPIError(Exception):
    """Mimics an SDK error that carries an HTTP status code."""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class FakeGeminiModels:
    def __init__(self, outcomes):
        self.outcomes = dict(outcomes)
        self.tried = []

    def generate_content(self, model, contents):
        self.tried.append(model)
        outcome = self.outcomes.get(model, FakeAPIError('model not found', code=404))
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(text=outcome)


def gemini_with(outcomes, model=None):
    models = FakeGeminiModels(outcomes)
    provider = GeminiProvider(api_key='key', model=model,
                              client_factory=lambda: SimpleNamespace(models=models))
    return provider, models


class TestCoachChain:
    @pytest.mark.parametrize('failures', [0, 1, 2])
    def test_first_success_wins(self, failures):
        """K failing providers, then one that answers; nothing after it runs."""
        failing = [FakeProvider(f'bad{i}', error=ProviderUnavailable('down')) for i in range(failures)]
        winner = FakeProvider('good', reply='answer')
        after = FakeProvider('after', reply='too late')
        chain = CoachChain(failing + [winner, after])

        assert chain.reply('hi', PROFILE) == 'answer'
        for provider in failing:
            assert len(provider.calls) == 1
        assert len(winner.calls) == 1
        assert after.calls == []

    def test_all_remote_fail_uses_local(self):
        chain = CoachChain([
            FakeProvider('a', error=ProviderUnavailable('no key')),
            FakeProvider('b', error=RuntimeError('boom')),
        ])
        text = chain.reply('hi', PROFILE)
        assert text.startswith("Hi Sam!")

    def test_local_provider_always_last(self):
        local = LocalProvider()
        remote = FakeProvider('remote', reply='x')
        chain = CoachChain([local, remote], fallback=local)
        assert chain.names == ['remote', 'stub']

    def test_canned_requests(self):
        provider = FakeProvider('remote', reply='plan')
        chain = CoachChain([provider])
        assert chain.generate_workout_plan(PROFILE) == 'plan'
        assert chain.generate_nutrition_advice(PROFILE) == 'plan'
        assert [call[0] for call in provider.calls] == [WORKOUT_PLAN_MESSAGE, NUTRITION_ADVICE_MESSAGE]


class TestBuildChain:
    def providers(self):
        return {'gemini': FakeProvider('gemini', reply='g'), 'groq': FakeProvider('groq', reply='q')}

    def test_mode_sequences(self):
        assert build_chain('gemini', self.providers()).names == ['gemini', 'groq', 'stub']
        assert build_chain('groq', self.providers()).names == ['groq', 'stub']
        assert build_chain('stub', self.providers()).names == ['stub']

    def test_every_sequence_ends_with_local(self):
        for sequence in MODE_SEQUENCES.values():
            assert sequence[-1] == 'stub'

    def test_mode_parsing(self):
        assert ProviderMode.parse(None) is ProviderMode.GEMINI
        assert ProviderMode.parse(' GROQ ') is ProviderMode.GROQ
        assert ProviderMode.parse('openai') is ProviderMode.GEMINI

    def test_groq_mode_skips_gemini(self):
        providers = self.providers()
        chain = build_chain(ProviderMode.GROQ, providers)
        assert chain.reply('hi', PROFILE) == 'q'
        assert providers['gemini'].calls == []

    def test_unconfigured_provider_is_skipped(self):
        chain = build_chain('gemini', {'groq': FakeProvider('groq', reply='q')})
        assert chain.names == ['groq', 'stub']


class TestGeminiProvider:
    def test_missing_key(self):
        provider = GeminiProvider(api_key=None, client_factory=lambda: pytest.fail('client built'))
        with pytest.raises(ProviderUnavailable, match='GEMINI_API_KEY'):
            provider.generate('hi', PROFILE)

    def test_configured_model_tried_first(self):
        provider, models = gemini_with({'my-model': 'custom'}, model='my-model')
        assert provider.generate('hi', PROFILE) == 'custom'
        assert models.tried == ['my-model']

    def test_moves_on_when_model_not_found(self):
        provider, models = gemini_with({'gemini-2.0-flash': 'second'})
        assert provider.generate('hi', PROFILE) == 'second'
        assert models.tried == ['gemini-2.5-flash', 'gemini-2.0-flash']

    def test_stops_on_other_errors(self):
        provider, models = gemini_with({'gemini-2.5-flash': FakeAPIError('quota exceeded', code=429)})
        with pytest.raises(ProviderUnavailable, match='quota'):
            provider.generate('hi', PROFILE)
        assert models.tried == ['gemini-2.5-flash']

    def test_all_candidates_missing(self):
        provider, models = gemini_with({})
        with pytest.raises(ProviderUnavailable):
            provider.generate('hi', PROFILE)
        assert models.tried == provider.candidates()

    def test_prompt_contains_profile_and_question(self):
        provider, models = gemini_with({'gemini-2.5-flash': 'ok'})
        captured = {}
        original = models.generate_content

        def capture(model, contents):
            captured['prompt'] = contents
            return original(model=model, contents=contents)

        models.generate_content = capture
        provider.generate('How do I run 10k?', PROFILE)
        assert 'How do I run 10k?' in captured['prompt']
        assert '- Goal: increase endurance' in captured['prompt']
        assert '- Target Weight: Not specified kg' in captured['prompt']


class TestErrorClassification:
    def test_structured_code_wins(self):
        assert is_model_not_found(FakeAPIError('whatever', code=404))
        # Message mentions "not found" but the status says otherwise
        assert not is_model_not_found(FakeAPIError('key not found', code=403))

    def test_message_heuristic_without_code(self):
        assert is_model_not_found(RuntimeError('models/foo is not supported'))
        assert is_model_not_found(RuntimeError('HTTP 404'))
        assert not is_model_not_found(RuntimeError('connection reset'))


class TestGroqProvider:
    def client(self, create):
        return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    def test_missing_key(self):
        with pytest.raises(ProviderUnavailable, match='GROQ_API_KEY'):
            GroqProvider(api_key='').generate('hi', PROFILE)

    def test_returns_message_content(self):
        calls = []

        def create(**kwargs):
            calls.append(kwargs)
            message = SimpleNamespace(content='Run 3x a week')
            return SimpleNamespace(choices=[SimpleNamespace(message=message)])

        provider = GroqProvider(api_key='key', client_factory=lambda: self.client(create))
        assert provider.generate('hi', PROFILE) == 'Run 3x a week'
        assert calls[0]['model'] == 'llama-3.3-70b-versatile'
        assert calls[0]['max_tokens'] == 500
        assert 'USER QUESTION: hi' in calls[0]['messages'][0]['content']

    def test_sdk_error_becomes_unavailable(self):
        def create(**kwargs):
            raise ConnectionError('network down')

        provider = GroqProvider(api_key='key', client_factory=lambda: self.client(create))
        with pytest.raises(ProviderUnavailable, match='network down'):
            provider.generate('hi', PROFILE)


def test_lazy_client_builds_once():
    built = []
    lazy = LazyClient(lambda: built.append(1) or object())
    first = lazy.get()
    assert lazy.get() is first
    assert built == [1]
