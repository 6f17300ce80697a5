"""Test doubles shared across unit tests."""

from datetime import datetime, timezone
from typing import Any, Optional

from flowgate.core.verifier import Verifier
from flowgate.models import Artifact, VerifierFailure, VerifierResult
from flowgate.utils.llm import LLMProvider

FIXED_NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeVerifier(Verifier):
    """Scriptable verifier: PASS unless a verdict is set, and records calls."""

    def __init__(self) -> None:
        self.next_action: Optional[VerifierResult] = None
        self.completion: Optional[VerifierResult] = None
        self.outcome: Optional[VerifierResult] = None
        self.project_next_action: Optional[VerifierResult] = None
        self.calls: list[str] = []

    def verify_next_action(self, action_text: str) -> VerifierResult:
        self.calls.append("next_action")
        return self.next_action or VerifierResult(status="PASS")

    def verify_completion(
        self, task_title: str, action_text: str, evidence: Artifact
    ) -> VerifierResult:
        self.calls.append("completion")
        return self.completion or VerifierResult(status="PASS")

    def verify_project_outcome(self, outcome: str) -> VerifierResult:
        self.calls.append("outcome")
        return self.outcome or VerifierResult(status="PASS")

    def verify_project_next_action(
        self, outcome: str, next_action_text: str
    ) -> VerifierResult:
        self.calls.append("project_next_action")
        return self.project_next_action or VerifierResult(status="PASS")


class FakeProvider(LLMProvider):
    """LLM provider returning a canned reply (or raising) without network."""

    def __init__(self, reply: Any = None, error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "fake"

    @property
    def default_model(self) -> str:
        return "fake-model"

    def generate_json(
        self,
        system: str,
        prompt: str,
        model: Optional[str] = None,
        sanitize: bool = True,
    ) -> Optional[dict[str, Any]]:
        self.prompts.append((system, prompt))
        if self.error is not None:
            raise self.error
        return self.reply


def fail(code: str = "VAGUE", message: str = "Too vague") -> VerifierResult:
    return VerifierResult(
        status="FAIL",
        failures=[VerifierFailure(code=code, message=message)],
        missing_inputs=["Who exactly?"],
    )
