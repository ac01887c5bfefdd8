"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings
from src.trainer.catalog import load_catalog
from src.trainer.clock import TickClock
from src.trainer.context import TrainingContext
from src.trainer.session import ScenarioProgressionEngine
from src.trainer.sinks import MemorySink


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (whole sessions)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment, exporting into tmp_path."""
    return Settings(
        _env_file=None,
        training_id="test-training",
        export_dir=tmp_path / "analytics",
    )


@pytest.fixture
def clock():
    """Deterministic clock starting at 2024-01-01T00:00:00Z."""
    return TickClock()


@pytest.fixture
def sink():
    """In-memory completion sink."""
    return MemorySink()


@pytest.fixture
def context(settings, clock, sink):
    """Training context wired with the deterministic clock and memory sink."""
    return TrainingContext.create(settings=settings, clock=clock, sink=sink)


@pytest.fixture
def engine(context):
    """Fresh progression engine."""
    return ScenarioProgressionEngine(context)


@pytest.fixture
def sample_question():
    """Provide a multiple-choice question entry."""
    return {"id": "q1", "type": "question", "questionKey": "question_1", "correctAnswers": [1, 3]}


@pytest.fixture
def sample_procedure():
    """Provide a three-step procedure entry (last step manual)."""
    return {
        "id": "p1",
        "type": "procedure",
        "procedureKey": "lockout",
        "steps": [
            {"targetObjectId": "breaker"},
            {"targetObjectId": "padlock", "validationType": "zone"},
            {"targetObjectId": "tag", "validationType": "manual"},
        ],
    }


@pytest.fixture
def sample_text():
    """Provide an informative text entry."""
    return {"id": "t1", "type": "text", "contentKey": "text_safety"}


@pytest.fixture
def sample_dialogue():
    """Provide a dialogue with one evaluated choice node and one unevaluated."""
    return {
        "id": "d1",
        "type": "dialogue",
        "dialogueKey": "supervisor_talk",
        "nodes": [
            {"id": "s", "type": "start", "nextNodeId": "l1"},
            {"id": "l1", "type": "dialogue", "nextNodeId": "c1"},
            {
                "id": "c1",
                "type": "choice",
                "choices": [
                    {"id": "good", "isCorrect": True, "nextNodeId": "c2"},
                    {"id": "bad", "isCorrect": False, "nextNodeId": "l2"},
                ],
            },
            {"id": "l2", "type": "line", "nextNodeId": "c1"},
            {
                "id": "c2",
                "type": "choice",
                "choices": [
                    {"id": "a", "nextNodeId": "e"},
                    {"id": "b", "nextNodeId": "e"},
                ],
            },
            {"id": "e", "type": "end"},
        ],
    }


@pytest.fixture
def sample_catalog(sample_question, sample_procedure, sample_text, sample_dialogue):
    """Catalog with one scenario of each type."""
    return load_catalog(
        [sample_question, sample_procedure, sample_text, sample_dialogue],
        training_id="test-training",
    )
