from .types import (
    ActorTeamSource,
    CalculationMethod,
    ContractAuditCheck,
    ContractAuditReport,
    Coverage,
    CoverageRate,
    DiceModifier,
    EventAttributionCounts,
    EventPayload,
    ForensicArtifact,
    InferenceConfidence,
    LuckCategory,
    LuckEvent,
    LuckEventMetadata,
    LuckExplainability,
    LuckMomentTag,
    LuckReport,
    LuckTeamAggregate,
    LuckVerdict,
    LuckierTeam,
    MatchIdentity,
    ParserDiagnostics,
    PlayerOwnershipIndex,
    ReplayEvent,
    ReplayEventType,
    ReplayModel,
    ReplayTurn,
    ReplayValidationError,
    RollContractKind,
    RollKnowledgeStatus,
    RollTypeContract,
    ScoringStatus,
    SourceFormat,
    Team,
    TimelineTurn,
    TurnAttributionCounts,
    TurnOwnershipInference,
    UnknownCode,
    UnknownCodeCategory,
    ValidationIssue,
)

__all__ = [
    "ActorTeamSource",
    "CalculationMethod",
    "ContractAuditCheck",
    "ContractAuditReport",
    "Coverage",
    "CoverageRate",
    "DiceModifier",
    "EventAttributionCounts",
    "EventPayload",
    "ForensicArtifact",
    "InferenceConfidence",
    "LuckCategory",
    "LuckEvent",
    "LuckEventMetadata",
    "LuckExplainability",
    "LuckMomentTag",
    "LuckReport",
    "LuckTeamAggregate",
    "LuckVerdict",
    "LuckierTeam",
    "MatchIdentity",
    "ParserDiagnostics",
    "PlayerOwnershipIndex",
    "ReplayEvent",
    "ReplayEventType",
    "ReplayModel",
    "ReplayTurn",
    "ReplayValidationError",
    "RollContractKind",
    "RollKnowledgeStatus",
    "RollTypeContract",
    "ScoringStatus",
    "SourceFormat",
    "Team",
    "TimelineTurn",
    "TurnAttributionCounts",
    "TurnOwnershipInference",
    "UnknownCode",
    "UnknownCodeCategory",
    "ValidationIssue",
]
