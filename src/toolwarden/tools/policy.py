"""
Toolwarden Security Policy

Decides, for a tool's risk class under the session's policy level, whether
an invocation may run directly, needs operator confirmation, or is
forbidden outright.

Decision matrix:
  READ_ONLY tool           -> ALLOW under READ_ONLY / CONFIRM_WRITES
                              CONFIRM under CONFIRM_ALL
  MUTATES_WORKSPACE tool   -> FORBID under READ_ONLY
                              CONFIRM under CONFIRM_WRITES / CONFIRM_ALL
  RUNS_ARBITRARY_CODE tool -> FORBID under READ_ONLY
                              CONFIRM under CONFIRM_WRITES / CONFIRM_ALL
  any tool                 -> FORBID under DISABLED

The policy renders no UI; the engine asks the confirmation collaborator.
"""

from __future__ import annotations

from toolwarden.core.models import GateDecision, PolicyLevel, RiskClass


class SecurityPolicy:
    """Pure (risk class, policy level) -> gate decision table."""

    _MATRIX: dict[tuple[RiskClass, PolicyLevel], GateDecision] = {
        (RiskClass.READ_ONLY, PolicyLevel.READ_ONLY): GateDecision.ALLOW,
        (RiskClass.READ_ONLY, PolicyLevel.CONFIRM_WRITES): GateDecision.ALLOW,
        (RiskClass.READ_ONLY, PolicyLevel.CONFIRM_ALL): GateDecision.CONFIRM,
        (RiskClass.READ_ONLY, PolicyLevel.DISABLED): GateDecision.FORBID,
        (RiskClass.MUTATES_WORKSPACE, PolicyLevel.READ_ONLY): GateDecision.FORBID,
        (RiskClass.MUTATES_WORKSPACE, PolicyLevel.CONFIRM_WRITES): GateDecision.CONFIRM,
        (RiskClass.MUTATES_WORKSPACE, PolicyLevel.CONFIRM_ALL): GateDecision.CONFIRM,
        (RiskClass.MUTATES_WORKSPACE, PolicyLevel.DISABLED): GateDecision.FORBID,
        (RiskClass.RUNS_ARBITRARY_CODE, PolicyLevel.READ_ONLY): GateDecision.FORBID,
        (RiskClass.RUNS_ARBITRARY_CODE, PolicyLevel.CONFIRM_WRITES): GateDecision.CONFIRM,
        (RiskClass.RUNS_ARBITRARY_CODE, PolicyLevel.CONFIRM_ALL): GateDecision.CONFIRM,
        (RiskClass.RUNS_ARBITRARY_CODE, PolicyLevel.DISABLED): GateDecision.FORBID,
    }

    @classmethod
    def decide(cls, risk: RiskClass, policy: PolicyLevel) -> GateDecision:
        # Unlisted pairs fail closed
        return cls._MATRIX.get((risk, policy), GateDecision.FORBID)

    @classmethod
    def needs_confirmation(cls, risk: RiskClass, policy: PolicyLevel) -> bool:
        return cls.decide(risk, policy) == GateDecision.CONFIRM

    @classmethod
    def is_forbidden(cls, risk: RiskClass, policy: PolicyLevel) -> bool:
        return cls.decide(risk, policy) == GateDecision.FORBID

    @staticmethod
    def explain(risk: RiskClass, policy: PolicyLevel, decision: GateDecision) -> str:
        if decision == GateDecision.ALLOW:
            return f"Risk={risk.value}, Policy={policy.value}: allowed without confirmation"
        if decision == GateDecision.CONFIRM:
            return f"Risk={risk.value}, Policy={policy.value}: operator confirmation required"
        if policy == PolicyLevel.DISABLED:
            return "Tool calling is disabled for this session"
        return f"Risk={risk.value} tools are not permitted under the {policy.value} policy"
