"""
Collections holding sensitive text and the fields to encrypt in each

Every collection is a member of the Collection enum and has a record model.
Mappings name fields through the model, and are checked when this module is
imported: a misspelled field fails the import instead of being silently
skipped by the migration.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple, Type

from pydantic import BaseModel


class Collection(str, Enum):
    JOURNAL_ENTRY = "journal_entry"
    CONVERSATION_HISTORY = "conversation_history"
    MOOD_CHECK_IN = "mood_check_in"
    CRISIS_EVENT = "crisis_event"
    GHOST_LETTER = "ghost_letter"
    GRATITUDE_ENTRY = "gratitude_entry"
    COPING_PLAN = "coping_plan"
    REPORT = "report"


class JournalEntry(BaseModel):
    id: int
    user_id: str
    content: Optional[str] = None
    created_at: Optional[datetime] = None


class ConversationHistory(BaseModel):
    id: int
    user_id: str
    role: Optional[str] = None
    content: Optional[str] = None
    created_at: Optional[datetime] = None


class MoodCheckIn(BaseModel):
    id: int
    user_id: str
    mood: Optional[str] = None
    intensity: Optional[int] = None
    note: Optional[str] = None
    activity: Optional[str] = None
    created_at: Optional[datetime] = None


class CrisisEvent(BaseModel):
    id: int
    user_id: str
    details: Optional[str] = None
    severity: Optional[str] = None
    created_at: Optional[datetime] = None


class GhostLetter(BaseModel):
    id: int
    user_id: str
    content: Optional[str] = None
    created_at: Optional[datetime] = None


class GratitudeEntry(BaseModel):
    id: int
    user_id: str
    item: Optional[str] = None
    created_at: Optional[datetime] = None


class CopingPlan(BaseModel):
    id: int
    user_id: str
    plan: Optional[str] = None
    updated_at: Optional[datetime] = None


class Report(BaseModel):
    id: int
    user_id: str
    message: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None


RECORD_MODELS: Dict[Collection, Type[BaseModel]] = {
    Collection.JOURNAL_ENTRY: JournalEntry,
    Collection.CONVERSATION_HISTORY: ConversationHistory,
    Collection.MOOD_CHECK_IN: MoodCheckIn,
    Collection.CRISIS_EVENT: CrisisEvent,
    Collection.GHOST_LETTER: GhostLetter,
    Collection.GRATITUDE_ENTRY: GratitudeEntry,
    Collection.COPING_PLAN: CopingPlan,
    Collection.REPORT: Report,
}


@dataclass(frozen=True)
class MigrationMapping:
    """Sensitive fields of one collection"""

    collection: Collection
    sensitive_fields: Tuple[str, ...]
    user_id_field: str = "user_id"

    @property
    def model(self) -> Type[BaseModel]:
        return RECORD_MODELS[self.collection]

    def validate(self) -> None:
        """
        Raises:
            ValueError: If a named field does not exist on the record model
        """
        known = set(self.model.model_fields)
        for field in (*self.sensitive_fields, self.user_id_field):
            if field not in known:
                raise ValueError(
                    f"{self.collection.value} has no field {field!r} "
                    f"(known: {', '.join(sorted(known))})"
                )


MIGRATION_MAPPINGS: List[MigrationMapping] = [
    MigrationMapping(Collection.JOURNAL_ENTRY, ("content",)),
    MigrationMapping(Collection.CONVERSATION_HISTORY, ("content",)),
    MigrationMapping(Collection.MOOD_CHECK_IN, ("mood", "note", "activity")),
    MigrationMapping(Collection.CRISIS_EVENT, ("details",)),
    MigrationMapping(Collection.GHOST_LETTER, ("content",)),
    MigrationMapping(Collection.GRATITUDE_ENTRY, ("item",)),
    MigrationMapping(Collection.COPING_PLAN, ("plan",)),
    MigrationMapping(Collection.REPORT, ("message",)),
]


def validate_mappings(mappings: List[MigrationMapping]) -> None:
    """Check every mapping against its model and that no collection repeats"""
    seen = set()
    for mapping in mappings:
        if mapping.collection in seen:
            raise ValueError(f"Duplicate mapping for {mapping.collection.value}")
        seen.add(mapping.collection)
        mapping.validate()


validate_mappings(MIGRATION_MAPPINGS)
