"""Tests for ExtractionClient."""
import pytest

from bne.errors import ExtractionServiceError
from bne.extraction import ExtractionClient, NameExtractor
from bne.extraction.prompts import SYSTEM_PROMPT, build_system_prompt
from bne.shared.llm import LLMConnectionError, LLMProvider
from bne.types import ExtractedName


class StubProvider(LLMProvider):
    def __init__(self, name="openai", response='{"names": []}', error=None):
        super().__init__(client=None)
        self._name = name
        self.response = response
        self.error = error
        self.calls = []

    @property
    def name(self):
        return self._name

    def generate(self, prompt, system=None, json_output=True, max_tokens=2000):
        self.calls.append({"prompt": prompt, "system": system, "json_output": json_output})
        if self.error:
            raise self.error
        return self.response


def test_is_a_name_extractor():
    assert isinstance(ExtractionClient(StubProvider()), NameExtractor)


def test_extracts_and_normalizes():
    provider = StubProvider(response=(
        '{"names": [{"name": "Jesús", "type": "person"}, '
        '{"name": " Jerusalén ", "type": "PLACE"}, '
        '{"name": "Jesús", "type": "person"}]}'
    ))
    client = ExtractionClient(provider)

    names = client.extract("Jesús subió a Jerusalén")

    assert names == [ExtractedName("Jesús", "person"), ExtractedName("Jerusalén", "place")]
    call = provider.calls[0]
    assert call["prompt"] == "Jesús subió a Jerusalén"
    assert call["system"] == SYSTEM_PROMPT
    assert call["json_output"] is True


def test_context_goes_into_system_prompt_only():
    provider = StubProvider()
    ExtractionClient(provider).extract("Y él respondió", preceding_context="Natanael le dijo")

    call = provider.calls[0]
    assert call["prompt"] == "Y él respondió"
    assert "Natanael le dijo" in call["system"]
    assert call["system"] == build_system_prompt("Natanael le dijo")


def test_service_failure_is_wrapped():
    client = ExtractionClient(StubProvider(error=LLMConnectionError("down")))

    with pytest.raises(ExtractionServiceError) as exc_info:
        client.extract("Pedro")
    assert isinstance(exc_info.value.__cause__, LLMConnectionError)


def test_unparseable_response_means_no_names():
    client = ExtractionClient(StubProvider(response="Lo siento, no puedo ayudar."))
    assert client.extract("Pedro") == []


def test_provider_override_uses_factory_once():
    default = StubProvider("openai")
    built = []

    def factory(name):
        provider = StubProvider(name, response='{"names": [{"name": "Pedro"}]}')
        built.append(provider)
        return provider

    client = ExtractionClient(default, provider_factory=factory)
    client.extract("Pedro", provider_override="ollama")
    names = client.extract("Pedro", provider_override="ollama")

    assert names == [ExtractedName("Pedro", "person")]
    assert len(built) == 1
    assert len(built[0].calls) == 2
    assert default.calls == []


def test_override_matching_default_uses_default():
    default = StubProvider("openai")
    ExtractionClient(default).extract("Pedro", provider_override="openai")
    assert len(default.calls) == 1


def test_override_without_factory():
    with pytest.raises(ValueError):
        ExtractionClient(StubProvider()).extract("Pedro", provider_override="anthropic")


def test_override_build_failure_is_wrapped():
    from bne.shared.llm import LLMAuthError

    def factory(name):
        raise LLMAuthError("ANTHROPIC_API_KEY is not set")

    client = ExtractionClient(StubProvider(), provider_factory=factory)
    with pytest.raises(ExtractionServiceError):
        client.extract("Pedro", provider_override="anthropic")
