"""
Extraction collaborator backed by OpenAI.

Voice input is transcribed with Whisper first; the transcript (or typed
notes) is then structured by a chat model in JSON mode.
"""
import json
import logging
from typing import Optional

import openai
from openai import OpenAI

from mediconsult.consultation.extraction import INPUT_VOICE, ExtractionResult, RawInput, parse_extraction_payload
from mediconsult.exceptions import ExtractionFailed

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are the extraction step of a clinical consultation recorder.

You receive what a doctor said or typed about ONE patient consultation.
Return ONLY a JSON object with these keys:
- chief_complaint (string): the main reason for the visit
- consultation_notes (string): history, findings and relevant observations
- diagnosis (string)
- medications (list of objects) each with:
    name (string), dosage (string, verbatim, e.g. "500mg"),
    duration (string, verbatim, e.g. "3 days"),
    frequency (object with boolean keys morning, afternoon, evening),
    timing_detail (one of before_breakfast, after_breakfast, before_lunch,
      after_lunch, before_dinner, after_dinner, bedtime, anytime, or null),
    instructions (string or null)
- follow_up_instructions (string)
- ai_summary (string): two sentences summarising the visit

Do NOT invent diagnoses or medications that were not mentioned.
Leave a field empty when it was not discussed.
"""


class OpenAIExtractor:
    def __init__(
        self,
        api_key: str,
        model: str = 'gpt-4o',
        transcription_model: str = 'whisper-1',
        timeout: float = 60.0,
        base_url: Optional[str] = None,
        client=None,
    ):
        self.api_key = api_key
        self.model = model
        self.transcription_model = transcription_model
        self.timeout = timeout
        self.base_url = base_url
        self._client = client

    @classmethod
    def from_config(cls, config) -> 'OpenAIExtractor':
        return cls(
            api_key=config.get('OPENAI_API_KEY', ''),
            model=config.get('EXTRACTION_MODEL', 'gpt-4o'),
            transcription_model=config.get('TRANSCRIPTION_MODEL', 'whisper-1'),
            timeout=config.get('EXTRACTION_TIMEOUT', 60.0),
            base_url=config.get('OPENAI_BASE_URL'),
        )

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.api_key)

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise ExtractionFailed('Extraction service is not configured (OPENAI_API_KEY missing)')
            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url, timeout=self.timeout)
        return self._client

    def transcribe(self, raw_input: RawInput) -> str:
        transcript = self.client.audio.transcriptions.create(
            model=self.transcription_model,
            file=(raw_input.filename, raw_input.audio, raw_input.content_type),
        )
        text = (transcript.text or '').strip()
        if not text:
            raise ExtractionFailed('Could not transcribe audio (empty result)')
        return text

    def structure(self, text: str) -> dict:
        completion = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"Consultation:\n{text}"},
            ],
            temperature=0,
            response_format={"type": "json_object"},
        )
        content = completion.choices[0].message.content
        logger.debug("Raw extraction response: %s", content)
        return json.loads(content or '')

    def extract(self, raw_input: RawInput) -> ExtractionResult:
        if raw_input.is_empty():
            raise ExtractionFailed('Nothing was captured')
        try:
            text = self.transcribe(raw_input) if raw_input.mode == INPUT_VOICE else raw_input.text.strip()
            payload = self.structure(text)
        except openai.APITimeoutError as e:
            logger.warning("Extraction timed out after %ss: %s", self.timeout, e)
            raise ExtractionFailed('Extraction timed out, please try again') from e
        except openai.OpenAIError as e:
            logger.error("Extraction API call failed: %s", e, exc_info=True)
            raise ExtractionFailed(f'Extraction service error: {e}') from e
        except json.JSONDecodeError as e:
            logger.error("Extraction returned invalid JSON: %s", e)
            raise ExtractionFailed('Extraction returned an unreadable result') from e

        result = parse_extraction_payload(payload, transcript=text)
        logger.info(
            "Extraction produced %d medications, dropped %d (complaint: %s)",
            len(result.medications), result.dropped_medications, 'yes' if result.chief_complaint else 'no',
        )
        return result
