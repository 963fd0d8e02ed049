from __future__ import annotations

from collections import Counter

from bbluck.contracts import (
    ContractAuditCheck,
    ContractAuditReport,
    InferenceConfidence,
    RollContractKind,
    RollKnowledgeStatus,
)
from bbluck.core import make_id, now_utc
from bbluck.luck.classification import ClassificationContext, classify_roll_context
from bbluck.replay.roll_contracts import ROLL_TYPE_CONTRACTS, RollTypeContractRegistry


class RollContractAuditor:
    def __init__(self, registry: RollTypeContractRegistry = ROLL_TYPE_CONTRACTS) -> None:
        self._registry = registry

    def run(self) -> ContractAuditReport:
        checks = [
            self._check_unique_keys(),
            self._check_scored_categories(),
            self._check_randomizers_uncategorized(),
            self._check_scored_confidence(),
            self._check_classifier_agreement(),
        ]
        return ContractAuditReport(
            report_id=make_id("audit"),
            generated_at=now_utc(),
            scope=f"roll_type_contracts@{self._registry.version}",
            checks=checks,
        )

    def _check_unique_keys(self) -> ContractAuditCheck:
        duplicates = sorted(key for key, count in Counter(self._registry.keys()).items() if count > 1)
        return ContractAuditCheck(
            check_id="unique_contract_keys",
            description="Each (sourceTag, rollType) pair appears once.",
            passed=not duplicates,
            evidence=f"contracts={len(self._registry)} duplicates={duplicates}",
        )

    def _check_scored_categories(self) -> ContractAuditCheck:
        missing = [
            c.key
            for c in self._registry.contracts()
            if c.kind is RollContractKind.SCORED_DETERMINISTIC and c.scoring_category is None
        ]
        return ContractAuditCheck(
            check_id="scored_contracts_categorized",
            description="Scored deterministic contracts declare a luck category.",
            passed=not missing,
            evidence=f"missing={missing}",
        )

    def _check_randomizers_uncategorized(self) -> ContractAuditCheck:
        offenders = [
            c.key for c in self._registry.contracts() if c.kind is RollContractKind.RANDOMIZER and c.scoring_category is not None
        ]
        return ContractAuditCheck(
            check_id="randomizers_uncategorized",
            description="Randomizer contracts never carry a luck category.",
            passed=not offenders,
            evidence=f"offenders={offenders}",
        )

    def _check_scored_confidence(self) -> ContractAuditCheck:
        weak = [
            c.key
            for c in self._registry.contracts()
            if c.kind is RollContractKind.SCORED_DETERMINISTIC
            and (c.confidence is InferenceConfidence.LOW or c.status is RollKnowledgeStatus.UNKNOWN)
        ]
        return ContractAuditCheck(
            check_id="scored_contracts_confident",
            description="No low-confidence or unknown-status contract is scored.",
            passed=not weak,
            evidence=f"weak={weak}",
        )

    def _check_classifier_agreement(self) -> ContractAuditCheck:
        mismatches: list[str] = []
        for contract in self._registry.contracts():
            result = classify_roll_context(
                ClassificationContext(source_tag=contract.source_tag, roll_type=contract.roll_type, difficulty=4, dice_count=1),
                self._registry,
            )
            expected = contract.kind is RollContractKind.SCORED_DETERMINISTIC
            if result.scored != expected or result.is_roll_candidate != self._registry.is_roll_candidate(contract):
                mismatches.append(contract.key)
        return ContractAuditCheck(
            check_id="classifier_agreement",
            description="Classifier scores exactly the scored contracts when a threshold is present.",
            passed=not mismatches,
            evidence=f"mismatches={mismatches}",
        )
