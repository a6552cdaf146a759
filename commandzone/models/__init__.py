from commandzone.models.card import CardSnapshot, normalize_name
from commandzone.models.deck import Deck, Entry, Zone, new_id
from commandzone.models.failure import (
    ApiResponse,
    CatalogLookupFailure,
    FailureDetail,
    FailureKind,
    InvariantViolation,
    KnownError,
    OutcomeType,
    PersistenceFailure,
    RefusalError,
    ValidationDenied,
)
from commandzone.models.legality import Decision, DenyReason, color_identity_label
from commandzone.models.mutations import (
    AddCard,
    ChangeQuantity,
    CreateZone,
    DeleteEntry,
    Effect,
    InsertEntry,
    MoveEntry,
    Mutation,
    RemoveEntry,
    ReplaceSnapshot,
    SetCommander,
    SetTags,
    UpdateEntry,
)

__all__ = [
    "AddCard",
    "ApiResponse",
    "CardSnapshot",
    "CatalogLookupFailure",
    "ChangeQuantity",
    "CreateZone",
    "Deck",
    "Decision",
    "DeleteEntry",
    "DenyReason",
    "Effect",
    "Entry",
    "FailureDetail",
    "FailureKind",
    "InsertEntry",
    "InvariantViolation",
    "KnownError",
    "MoveEntry",
    "Mutation",
    "OutcomeType",
    "PersistenceFailure",
    "RefusalError",
    "RemoveEntry",
    "ReplaceSnapshot",
    "SetCommander",
    "SetTags",
    "UpdateEntry",
    "ValidationDenied",
    "Zone",
    "color_identity_label",
    "new_id",
    "normalize_name",
]
