"""
Pytest configuration and shared fixtures for scopemate tests.

This module provides:
- An isolated, env-free Config for every test
- The game example (tasks + requirement tree) used across test modules
"""

from pathlib import Path
from typing import Dict

import pytest

from scopemate import config as config_module
from scopemate.schema import Requirement, Task


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

TESTS_DIR = Path(__file__).parent
REPO_ROOT = TESTS_DIR.parent
SAMPLES_DIR = REPO_ROOT / "data" / "samples"

ENV_VARS = (
    "SM_AZURE_BLOB_CONNECTION_STRING",
    "SM_AZURE_BLOB_CONTAINER_NAME",
    "SM_MAX_DEPTH",
    "SM_WARN_ON_DIVERGENT_DUPLICATES",
    "SM_LOG_LEVEL",
)


# ---------------------------------------------------------------------------
# Config isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Drop SM_* variables and the cached process-wide Config."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "_DEFAULT_CONFIG", None)
    yield


# ---------------------------------------------------------------------------
# Game example
# ---------------------------------------------------------------------------

@pytest.fixture
def game_tasks() -> Dict[str, Task]:
    return {
        "Portrait": Task("Portrait", "Art", 60),
        "Sprite": Task("Sprite", "Art", 60),
        "GameBackground": Task("GameBackground", "Art", 10),
        "EndGameScreen": Task("EndGameScreen", "Code", 15),
        "BGMTrack": Task("BGMTrack", "Music", 120),
    }


@pytest.fixture
def game_project(game_tasks) -> Requirement:
    character = Requirement("character")
    character.add(game_tasks["Portrait"], 2)
    character.add(game_tasks["Sprite"], 1)

    end_screen = Requirement("endScreen")
    end_screen.add(game_tasks["GameBackground"], 1)
    end_screen.add(game_tasks["EndGameScreen"], 1)

    game = Requirement("game")
    game.add(character, 2)
    game.add(game_tasks["BGMTrack"], 3)
    game.add(end_screen, 2)
    return game


@pytest.fixture
def sample_definition_path() -> Path:
    return SAMPLES_DIR / "game_project.json"
