"""
Pytest configuration and fixtures
"""
import pytest

from common.database import InMemoryStore
from common.security import EncryptionService


TEST_SECRET = "test-secret"
TEST_SALTS = ["a", "b"]


@pytest.fixture(scope="session")
def encryption() -> EncryptionService:
    """Initialized encryption service shared by the whole session"""
    service = EncryptionService()
    assert service.initialize(TEST_SECRET, TEST_SALTS) is True
    return service


@pytest.fixture
def passthrough() -> EncryptionService:
    """Service that was never given key material"""
    return EncryptionService()


@pytest.fixture
def sample_collections():
    """One or more records per migrated collection"""
    return {
        "journal_entry": [
            {"id": 1, "user_id": "u1", "content": "Today was hard"},
            {"id": 2, "user_id": "u1", "content": None},
            {"id": 3, "user_id": "u2", "content": "   "},
        ],
        "conversation_history": [
            {"id": 1, "user_id": "u1", "role": "user", "content": "I feel anxious"},
        ],
        "mood_check_in": [
            {"id": 1, "user_id": "u1", "mood": "sad", "intensity": 3, "note": "rain", "activity": None},
            {"id": 2, "user_id": "u2", "mood": "happy", "intensity": 5, "note": "", "activity": "walk"},
        ],
        "crisis_event": [
            {"id": 1, "user_id": "u3", "details": "flagged message"},
        ],
        "ghost_letter": [
            {"id": 1, "user_id": "u1", "content": "Dear past me"},
        ],
        "gratitude_entry": [
            {"id": 1, "user_id": "u1", "item": "coffee"},
            {"id": 2, "user_id": "u2", "item": "friends"},
        ],
        "coping_plan": [
            {"id": 1, "user_id": "u1", "plan": "breathe, then call Sam"},
        ],
        "report": [
            {"id": 1, "user_id": "u4", "message": "bot was rude"},
        ],
    }


@pytest.fixture
def memory_store(sample_collections) -> InMemoryStore:
    return InMemoryStore(collections=sample_collections)
