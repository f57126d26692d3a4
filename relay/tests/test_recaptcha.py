import unittest
from unittest import mock

from google.api_core import exceptions as google_exceptions

from relay.errors import AbuseCheckError
from relay.recaptcha import (
    Assessment,
    RecaptchaEnterpriseScorer,
    StaticScorer,
    Verdict,
    evaluate,
)


class EvaluateTests(unittest.TestCase):
    def test_passes_at_threshold(self):
        assessment = Assessment(valid=True, action="intro", score=0.5)

        self.assertEqual(evaluate(assessment, "intro", 0.5), Verdict.PASSED)

    def test_invalid_token_wins_over_other_checks(self):
        assessment = Assessment(valid=False, action="other", score=0.0)

        self.assertEqual(evaluate(assessment, "intro"), Verdict.INVALID_TOKEN)

    def test_action_mismatch(self):
        assessment = Assessment(valid=True, action="login", score=0.9)

        self.assertEqual(evaluate(assessment, "intro"), Verdict.ACTION_MISMATCH)

    def test_low_score(self):
        assessment = Assessment(valid=True, action="intro", score=0.2)

        self.assertEqual(evaluate(assessment, "intro"), Verdict.LOW_SCORE)


class StaticScorerTests(unittest.TestCase):
    def test_echoes_expected_action(self):
        scorer = StaticScorer()

        assessment = scorer.assess("tok", "site", "intro")

        self.assertEqual(assessment.action, "intro")
        self.assertEqual(scorer.calls, [("tok", "site", "intro")])


class RecaptchaEnterpriseScorerTests(unittest.TestCase):
    def setUp(self):
        patcher = mock.patch(
            "relay.recaptcha.recaptchaenterprise_v1.RecaptchaEnterpriseServiceClient"
        )
        client_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.service = client_cls.return_value
        self.scorer = RecaptchaEnterpriseScorer(project_id="proj-1")

    def test_maps_response(self):
        response = self.service.create_assessment.return_value
        response.token_properties.valid = True
        response.token_properties.action = "intro"
        response.token_properties.invalid_reason.name = "INVALID_REASON_UNSPECIFIED"
        response.risk_analysis.score = 0.7

        assessment = self.scorer.assess("tok", "site", "intro")

        self.assertEqual(assessment, Assessment(True, "intro", 0.7, "INVALID_REASON_UNSPECIFIED"))
        request = self.service.create_assessment.call_args.kwargs["request"]
        self.assertEqual(request.parent, "projects/proj-1")
        self.assertEqual(request.assessment.event.token, "tok")
        self.assertEqual(request.assessment.event.site_key, "site")
        self.assertEqual(request.assessment.event.expected_action, "intro")

    def test_api_error_raises_abuse_check_error(self):
        self.service.create_assessment.side_effect = google_exceptions.PermissionDenied(
            "no access"
        )

        with self.assertRaises(AbuseCheckError):
            self.scorer.assess("tok", "site", "intro")


if __name__ == "__main__":
    unittest.main()
