"""Semantic verifier adapter.

Four call shapes back the gates: next-action validity, completion evidence,
project outcome testability, and project next action relative to its outcome.
The offline verifier gives conservative defaults; the LLM verifier asks the
configured provider and never turns a failure or timeout into a pass.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Optional

from pydantic import ValidationError

from flowgate.config import Settings
from flowgate.models import Artifact, VerifierFailure, VerifierResult
from flowgate.utils.llm import LLMProvider, get_provider

logger = logging.getLogger(__name__)

EVIDENCE_PREVIEW_CHARS = 1500

_CONTRACT = """Reply with a JSON object of this shape:
{"status": "PASS" | "FAIL" | "NEEDS_USER",
 "failures": [{"code": str, "severity": str, "message": str, "fieldRef": str (optional)}],
 "missingInputs": [str], "vaguenessFlags": [str], "unverifiableClaims": [str]}"""

NEXT_ACTION_SYSTEM = f"""You are an auditor. Evaluate whether the "next action" is valid.
Valid = starts with a verb (call, email, draft, buy, schedule, etc.), has a concrete object (person/file/place), doable in one sitting, no placeholders (TBD, figure out, work on, handle).
Return PASS only if all criteria are met. Return FAIL with specific reasons otherwise. Return NEEDS_USER if the user must provide missing info.
{_CONTRACT}"""

COMPLETION_SYSTEM = f"""You are an auditor. Evaluate whether a task can be marked DONE given the evidence provided.
Evidence might be: draft text, email draft (recipient + subject + body), decision note, or file/schedule reference.
Return PASS only if the evidence is sufficient to confirm the work was done. Return FAIL with reasons if evidence is missing or vague.
{_CONTRACT}"""

PROJECT_OUTCOME_SYSTEM = f"""You are an auditor. Evaluate whether a project "outcome statement" is concrete and testable.
Valid = specific, measurable or verifiable result (e.g. "Have signed contract with vendor X", "Launch feature Y on staging").
Return PASS only if the outcome is clear enough to know when the project is done. Return FAIL for vague outcomes (e.g. "improve things", "get organized"). Return NEEDS_USER if the user must provide missing info.
{_CONTRACT}"""

PROJECT_NEXT_ACTION_SYSTEM = (
    NEXT_ACTION_SYSTEM
    + "\nAlso check that the next action is a legitimate first step toward the outcome."
)


def _pass() -> VerifierResult:
    return VerifierResult(status="PASS")


def unavailable(message: str) -> VerifierResult:
    """Verdict used when the verifier cannot answer (error, timeout, junk)."""
    return VerifierResult(
        status="NEEDS_USER",
        failures=[
            VerifierFailure(
                code="VERIFIER_UNAVAILABLE", severity="high", message=message
            )
        ],
    )


def _summarize_evidence(evidence: Artifact) -> str:
    if evidence.content:
        content = evidence.content[:EVIDENCE_PREVIEW_CHARS]
        more = "..." if len(evidence.content) > EVIDENCE_PREVIEW_CHARS else ""
        return f"Content: {content}{more}"
    if evidence.file_pointer:
        return f"File/pointer: {evidence.file_pointer}"
    return "No content or file provided."


class Verifier(ABC):
    """External semantic checker consumed by the gates."""

    @abstractmethod
    def verify_next_action(self, action_text: str) -> VerifierResult:
        ...

    @abstractmethod
    def verify_completion(
        self, task_title: str, action_text: str, evidence: Artifact
    ) -> VerifierResult:
        ...

    @abstractmethod
    def verify_project_outcome(self, outcome: str) -> VerifierResult:
        ...

    @abstractmethod
    def verify_project_next_action(
        self, outcome: str, next_action_text: str
    ) -> VerifierResult:
        ...


class OfflineVerifier(Verifier):
    """Conservative defaults when no provider is configured.

    Text checks pass and lean on the rule checker; completion passes only
    with real evidence.
    """

    def verify_next_action(self, action_text: str) -> VerifierResult:
        return _pass()

    def verify_completion(
        self, task_title: str, action_text: str, evidence: Artifact
    ) -> VerifierResult:
        if evidence.is_evidence:
            return _pass()
        return VerifierResult(
            status="FAIL",
            failures=[
                VerifierFailure(
                    code="NO_EVIDENCE",
                    severity="high",
                    message="No draft artifact attached",
                )
            ],
        )

    def verify_project_outcome(self, outcome: str) -> VerifierResult:
        return _pass()

    def verify_project_next_action(
        self, outcome: str, next_action_text: str
    ) -> VerifierResult:
        return _pass()


class LLMVerifier(Verifier):
    """Verifier backed by an LLM provider with a bounded wait per call."""

    def __init__(self, provider: LLMProvider, timeout: float = 20.0) -> None:
        self._provider = provider
        self._timeout = timeout
        self._executor = ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="flowgate-verifier"
        )

    @property
    def provider_name(self) -> str:
        return self._provider.name

    def _ask(self, system: str, prompt: str) -> VerifierResult:
        future = self._executor.submit(self._provider.generate_json, system, prompt)
        try:
            raw = future.result(timeout=self._timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.warning(
                "Verifier (%s) timed out after %.1fs", self._provider.name, self._timeout
            )
            return unavailable(f"Verifier timed out after {self._timeout:g}s")
        except Exception as e:
            logger.warning(
                "Verifier (%s) call failed: %s: %s",
                self._provider.name,
                type(e).__name__,
                e,
            )
            return unavailable("Verifier call failed")

        if not raw:
            logger.warning("Verifier (%s) returned no usable reply", self._provider.name)
            return unavailable("Empty verifier response")
        try:
            return VerifierResult.model_validate(raw)
        except ValidationError as e:
            logger.warning("Verifier reply did not match contract: %s", e)
            return unavailable("Verifier response did not match the expected shape")

    def verify_next_action(self, action_text: str) -> VerifierResult:
        return self._ask(NEXT_ACTION_SYSTEM, f'Next action: "{action_text}"')

    def verify_completion(
        self, task_title: str, action_text: str, evidence: Artifact
    ) -> VerifierResult:
        prompt = (
            f'Task: "{task_title}"\n'
            f'Action: "{action_text}"\n'
            f"Evidence type: {evidence.artifact_type}\n"
            f"{_summarize_evidence(evidence)}"
        )
        return self._ask(COMPLETION_SYSTEM, prompt)

    def verify_project_outcome(self, outcome: str) -> VerifierResult:
        return self._ask(PROJECT_OUTCOME_SYSTEM, f'Outcome statement: "{outcome}"')

    def verify_project_next_action(
        self, outcome: str, next_action_text: str
    ) -> VerifierResult:
        return self._ask(
            PROJECT_NEXT_ACTION_SYSTEM,
            f'Outcome: "{outcome}"\nNext action: "{next_action_text}"',
        )


def build_verifier(
    settings: Settings, provider: Optional[LLMProvider] = None
) -> Verifier:
    """Pick the LLM verifier when enabled and a provider is configured."""
    if not settings.verifier_enabled:
        logger.info("Verifier disabled; using offline defaults")
        return OfflineVerifier()
    provider = provider or get_provider()
    if provider is None:
        logger.info("No LLM provider configured; using offline verifier")
        return OfflineVerifier()
    logger.info("Using %s verifier", provider.name)
    return LLMVerifier(provider, timeout=settings.verifier_timeout)
