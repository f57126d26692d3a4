"""
reCAPTCHA Enterprise assessments for the public intake forms.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Optional, Protocol

from google.api_core import exceptions as google_exceptions
from google.cloud import recaptchaenterprise_v1

from relay.errors import AbuseCheckError

logger = logging.getLogger(__name__)

DEFAULT_MIN_SCORE = 0.5


@dataclass
class Assessment:
    valid: bool
    action: str
    score: float
    invalid_reason: str = ""


class Verdict(StrEnum):
    PASSED = "passed"
    INVALID_TOKEN = "invalid_token"
    ACTION_MISMATCH = "action_mismatch"
    LOW_SCORE = "low_score"


class AbuseScorer(Protocol):
    def assess(self, token: str, site_key: str, expected_action: str) -> Assessment:
        ...


def evaluate(
    assessment: Assessment,
    expected_action: str,
    min_score: float = DEFAULT_MIN_SCORE,
) -> Verdict:
    if not assessment.valid:
        logger.error(
            "Recaptcha verification failed, invalid token: %s",
            assessment.invalid_reason,
        )
        return Verdict.INVALID_TOKEN
    if assessment.action != expected_action:
        logger.error(
            "Recaptcha action mismatch. Expected: %s, Got: %s",
            expected_action,
            assessment.action,
        )
        return Verdict.ACTION_MISMATCH
    if assessment.score < min_score:
        logger.error("Recaptcha check failed: low score (%s).", assessment.score)
        return Verdict.LOW_SCORE
    logger.info("Recaptcha assessment passed with score: %s", assessment.score)
    return Verdict.PASSED


@dataclass
class RecaptchaEnterpriseScorer:
    project_id: str

    def __post_init__(self):
        self._client = recaptchaenterprise_v1.RecaptchaEnterpriseServiceClient()

    def assess(self, token: str, site_key: str, expected_action: str) -> Assessment:
        request = recaptchaenterprise_v1.CreateAssessmentRequest(
            parent=f"projects/{self.project_id}",
            assessment=recaptchaenterprise_v1.Assessment(
                event=recaptchaenterprise_v1.Event(
                    token=token,
                    site_key=site_key,
                    expected_action=expected_action,
                )
            ),
        )
        try:
            response = self._client.create_assessment(request=request)
        except google_exceptions.GoogleAPIError as exc:
            raise AbuseCheckError(f"Recaptcha assessment failed: {exc}") from exc
        properties = response.token_properties
        return Assessment(
            valid=properties.valid,
            action=properties.action,
            score=response.risk_analysis.score,
            invalid_reason=properties.invalid_reason.name,
        )


@dataclass
class StaticScorer:
    """Returns a fixed assessment; for local development and tests."""

    valid: bool = True
    score: float = 0.9
    action: Optional[str] = None
    calls: list = field(default_factory=list)

    def assess(self, token: str, site_key: str, expected_action: str) -> Assessment:
        self.calls.append((token, site_key, expected_action))
        return Assessment(
            valid=self.valid,
            action=self.action if self.action is not None else expected_action,
            score=self.score,
            invalid_reason="" if self.valid else "MALFORMED",
        )
