import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from mediconsult.consultation import RawInput, parse_extraction_payload
from mediconsult.exceptions import ExtractionFailed
from mediconsult.services import OpenAIExtractor

PAYLOAD = {
    'chief_complaint': 'Fever for two days',
    'consultation_notes': ['Temperature 39C', 'No rash'],
    'diagnosis': 'Viral fever',
    'medications': [
        {'name': 'Paracetamol', 'dosage': '650mg', 'duration': '3 days',
         'frequency': {'morning': True, 'afternoon': False, 'evening': True},
         'timing_detail': 'after_breakfast', 'instructions': 'Take with water'},
        {'name': '', 'dosage': '10mg', 'duration': '1 day'},
    ],
    'follow_up_instructions': 'Review in 3 days',
    'ai_summary': 'Viral fever, symptomatic treatment.',
}


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


class FakeTranscriptions:
    def __init__(self, text):
        self.text = text
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(text=self.text)


def _client(completions, transcript='Patient has fever for two days.'):
    return SimpleNamespace(
        chat=SimpleNamespace(completions=completions),
        audio=SimpleNamespace(transcriptions=FakeTranscriptions(transcript)),
    )


def test_parse_payload_drops_invalid_medications():
    result = parse_extraction_payload(PAYLOAD, transcript='raw')
    assert result.consultation_notes == 'Temperature 39C; No rash'
    assert [m.name for m in result.medications] == ['Paracetamol']
    assert result.medications[0].evening is True
    assert result.transcript == 'raw'
    assert result.dropped_medications == 1
    assert result.to_dict()['dropped_medications'] == 1


def test_parse_payload_rejects_bad_shapes():
    with pytest.raises(ExtractionFailed):
        parse_extraction_payload(['not', 'an', 'object'])
    with pytest.raises(ExtractionFailed):
        parse_extraction_payload({'medications': 'Paracetamol'})


def test_text_extraction_uses_json_mode():
    completions = FakeCompletions(json.dumps(PAYLOAD))
    extractor = OpenAIExtractor(api_key='test', model='gpt-4o', client=_client(completions))

    result = extractor.extract(RawInput.from_text('  Fever for two days, temp 39.  '))

    call = completions.calls[0]
    assert call['response_format'] == {'type': 'json_object'}
    assert call['temperature'] == 0
    assert 'Fever for two days, temp 39.' in call['messages'][1]['content']
    assert result.diagnosis == 'Viral fever'


def test_voice_extraction_transcribes_first():
    completions = FakeCompletions(json.dumps(PAYLOAD))
    client = _client(completions)
    extractor = OpenAIExtractor(api_key='test', client=client)

    result = extractor.extract(RawInput.from_audio(b'RIFF....WAVE', 'audio/wav', 'visit.wav'))

    assert client.audio.transcriptions.calls[0]['model'] == 'whisper-1'
    assert result.transcript == 'Patient has fever for two days.'
    assert 'Patient has fever' in completions.calls[0]['messages'][1]['content']


@pytest.mark.parametrize('error', [
    openai.APITimeoutError(request=httpx.Request('POST', 'https://api.openai.com/v1/chat/completions')),
    openai.OpenAIError('rate limited'),
])
def test_api_errors_become_extraction_failures(error):
    extractor = OpenAIExtractor(api_key='test', client=_client(FakeCompletions(error=error)))
    with pytest.raises(ExtractionFailed):
        extractor.extract(RawInput.from_text('notes'))


def test_unreadable_response():
    extractor = OpenAIExtractor(api_key='test', client=_client(FakeCompletions('not json')))
    with pytest.raises(ExtractionFailed) as exc:
        extractor.extract(RawInput.from_text('notes'))
    assert 'unreadable' in exc.value.message


def test_missing_api_key():
    extractor = OpenAIExtractor(api_key='')
    assert extractor.configured is False
    with pytest.raises(ExtractionFailed) as exc:
        extractor.extract(RawInput.from_text('notes'))
    assert 'OPENAI_API_KEY' in exc.value.message


def test_empty_input_never_reaches_the_api():
    completions = FakeCompletions(json.dumps(PAYLOAD))
    extractor = OpenAIExtractor(api_key='test', client=_client(completions))
    with pytest.raises(ExtractionFailed):
        extractor.extract(RawInput.from_audio(b''))
    assert completions.calls == []
