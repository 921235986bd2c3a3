"""Tests for the security policy decision table."""

import pytest

from toolwarden.core.models import GateDecision, PolicyLevel, RiskClass
from toolwarden.tools.policy import SecurityPolicy

R = RiskClass
P = PolicyLevel
D = GateDecision

EXPECTED = [
    (R.READ_ONLY, P.READ_ONLY, D.ALLOW),
    (R.READ_ONLY, P.CONFIRM_WRITES, D.ALLOW),
    (R.READ_ONLY, P.CONFIRM_ALL, D.CONFIRM),
    (R.READ_ONLY, P.DISABLED, D.FORBID),
    (R.MUTATES_WORKSPACE, P.READ_ONLY, D.FORBID),
    (R.MUTATES_WORKSPACE, P.CONFIRM_WRITES, D.CONFIRM),
    (R.MUTATES_WORKSPACE, P.CONFIRM_ALL, D.CONFIRM),
    (R.MUTATES_WORKSPACE, P.DISABLED, D.FORBID),
    (R.RUNS_ARBITRARY_CODE, P.READ_ONLY, D.FORBID),
    (R.RUNS_ARBITRARY_CODE, P.CONFIRM_WRITES, D.CONFIRM),
    (R.RUNS_ARBITRARY_CODE, P.CONFIRM_ALL, D.CONFIRM),
    (R.RUNS_ARBITRARY_CODE, P.DISABLED, D.FORBID),
]


class TestDecisionTable:
    def test_table_is_exhaustive(self):
        covered = {(risk, policy) for risk, policy, _ in EXPECTED}
        assert covered == {(risk, policy) for risk in RiskClass for policy in PolicyLevel}

    @pytest.mark.parametrize("risk, policy, expected", EXPECTED)
    def test_decide(self, risk, policy, expected):
        assert SecurityPolicy.decide(risk, policy) == expected

    @pytest.mark.parametrize("risk, policy, expected", EXPECTED)
    def test_needs_confirmation_matches_decision(self, risk, policy, expected):
        assert SecurityPolicy.needs_confirmation(risk, policy) == (expected == D.CONFIRM)

    @pytest.mark.parametrize("risk, policy, expected", EXPECTED)
    def test_is_forbidden_matches_decision(self, risk, policy, expected):
        assert SecurityPolicy.is_forbidden(risk, policy) == (expected == D.FORBID)

    def test_decide_is_pure(self):
        first = SecurityPolicy.decide(R.MUTATES_WORKSPACE, P.CONFIRM_WRITES)
        for _ in range(5):
            assert SecurityPolicy.decide(R.MUTATES_WORKSPACE, P.CONFIRM_WRITES) == first

    def test_disabled_forbids_everything(self):
        for risk in RiskClass:
            assert SecurityPolicy.decide(risk, P.DISABLED) == D.FORBID


class TestExplanations:
    def test_allow(self):
        text = SecurityPolicy.explain(R.READ_ONLY, P.CONFIRM_WRITES, D.ALLOW)
        assert "allowed" in text

    def test_confirm(self):
        text = SecurityPolicy.explain(R.RUNS_ARBITRARY_CODE, P.CONFIRM_WRITES, D.CONFIRM)
        assert "confirmation required" in text

    def test_forbid_under_read_only(self):
        text = SecurityPolicy.explain(R.MUTATES_WORKSPACE, P.READ_ONLY, D.FORBID)
        assert "MUTATES_WORKSPACE" in text and "READ_ONLY" in text

    def test_forbid_when_disabled(self):
        text = SecurityPolicy.explain(R.READ_ONLY, P.DISABLED, D.FORBID)
        assert "disabled" in text
