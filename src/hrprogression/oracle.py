"""Evaluation oracle clients and verdict parsing."""

from __future__ import annotations

import json
import re
from typing import Any, Protocol, runtime_checkable
from urllib import error, request

import structlog
from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from .errors import OracleError
from .schemas import CodeEvaluation

FALLBACK_FOLLOW_UPS: tuple[str, ...] = (
    "Can you explain the time complexity of your solution?",
    "How would you handle edge cases in your code?",
    "What alternative approaches could you consider?",
)

MAX_FOLLOW_UPS = 3

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)

EVALUATION_PROMPT = """\
You are a senior technical interviewer evaluating a candidate's answer.

Score the answer to the problem below on four criteria, each an integer from 0 to 10:
1. correctness: does it produce the right result and handle edge cases?
2. understanding: does it show a solid grasp of the problem and its constraints?
3. quality: is it clean, well structured and maintainable?
4. efficiency: is it efficient in time and space?

Add a short feedback paragraph (1-3 sentences) and 2-3 follow-up questions an
interviewer could ask about this specific answer during a live interview.

Problem:
{question}

Candidate's answer:
{answer}

Respond with JSON only, in exactly this shape:
{{"correctness": 0, "understanding": 0, "quality": 0, "efficiency": 0,
  "feedback": "string", "followUpQuestions": ["string", "string", "string"]}}
"""


@runtime_checkable
class EvaluationOracle(Protocol):
    """Rubric scorer for free-form Coding and SystemDesign answers."""

    def evaluate(self, question: str, answer: str) -> dict[str, Any] | str:
        """Return the raw verdict; raise OracleError when the call fails."""


def build_evaluation_prompt(question: str, answer: str) -> str:
    return EVALUATION_PROMPT.format(question=question, answer=answer)


def parse_verdict(raw: dict[str, Any] | str | None) -> CodeEvaluation:
    """Turn raw oracle output into a verdict or raise :class:`OracleError`."""
    if raw is None:
        raise OracleError("Oracle returned no verdict")
    payload: Any = raw
    if isinstance(raw, str):
        match = _JSON_BLOCK.search(raw)
        if not match:
            raise OracleError("Oracle verdict is not JSON", raw=raw[:200])
        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise OracleError("Oracle verdict is not JSON", raw=raw[:200]) from exc
    if not isinstance(payload, dict):
        raise OracleError("Oracle verdict must be an object")
    try:
        verdict = CodeEvaluation.model_validate(payload)
    except ValidationError as exc:
        raise OracleError("Oracle verdict failed validation", errors=exc.errors(include_url=False)) from exc
    follow_ups = [item.strip() for item in verdict.follow_up_questions if item and item.strip()]
    if not follow_ups:
        follow_ups = list(FALLBACK_FOLLOW_UPS)
    return verdict.model_copy(update={"follow_up_questions": follow_ups[:MAX_FOLLOW_UPS]})


class HTTPEvaluationOracle:
    """JSON-over-HTTP oracle: POSTs the question and answer, expects a verdict object."""

    def __init__(self, endpoint: str, api_key: str | None = None, *, timeout: float = 10.0):
        self._endpoint = endpoint
        self._api_key = api_key
        self._timeout = timeout
        self._logger = structlog.get_logger(__name__)

    def evaluate(self, question: str, answer: str) -> dict[str, Any]:
        payload = {"question": question, "answer": answer, "prompt": build_evaluation_prompt(question, answer)}
        data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        req = request.Request(self._endpoint, data=data, headers=headers, method="POST")
        try:
            with request.urlopen(req, timeout=self._timeout) as resp:
                body = resp.read().decode("utf-8")
        except (error.URLError, TimeoutError) as exc:
            self._logger.warning("oracle.request_failed", endpoint=self._endpoint, error=str(exc))
            raise OracleError("Oracle request failed", reason=str(exc)) from exc
        try:
            return json.loads(body) if body else {}
        except json.JSONDecodeError as exc:
            raise OracleError("Oracle response is not JSON") from exc


class OpenAIEvaluationOracle:
    """Chat-completions backed oracle."""

    def __init__(
        self,
        client: OpenAI | None = None,
        *,
        api_key: str | None = None,
        model: str = "gpt-3.5-turbo",
        temperature: float = 0.2,
        timeout: float = 10.0,
    ):
        self._client = client or OpenAI(api_key=api_key, timeout=timeout)
        self._model = model
        self._temperature = temperature
        self._logger = structlog.get_logger(__name__)

    def evaluate(self, question: str, answer: str) -> str:
        try:
            resp = self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": build_evaluation_prompt(question, answer)}],
                temperature=self._temperature,
            )
        except OpenAIError as exc:
            self._logger.warning("oracle.request_failed", model=self._model, error=str(exc))
            raise OracleError("Oracle request failed", reason=str(exc)) from exc
        return (resp.choices[0].message.content or "").strip()
