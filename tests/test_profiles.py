"""
tests/test_profiles.py

Source profile validation and registry lookup.
"""

from __future__ import annotations

import pytest

from app.domain.errors import UnknownSourceError
from app.domain.sighting import SourceKind
from app.ingestion.profiles import (
    DEFAULT_REGISTRY,
    GEIPAN_PROFILE,
    USER_PROFILE,
    ProfileRegistry,
    SourceProfile,
    get_profile,
)


def test_lookup_is_case_insensitive() -> None:
    assert get_profile("geipan") is GEIPAN_PROFILE
    assert get_profile(" User ") is USER_PROFILE


def test_unknown_source_lists_known_names() -> None:
    with pytest.raises(UnknownSourceError) as exc_info:
        get_profile("BLUEBOOK")
    assert "NUFORC" in str(exc_info.value)
    assert exc_info.value.source_name == "BLUEBOOK"


def test_builtin_profiles_are_registered() -> None:
    assert DEFAULT_REGISTRY.names() == ["GEIPAN", "MUFON", "NUFORC", "USER"]


def test_every_builtin_profile_maps_description() -> None:
    for name in DEFAULT_REGISTRY.names():
        assert DEFAULT_REGISTRY.get(name).candidates("description")


def test_user_profile_is_hand_submitted() -> None:
    assert USER_PROFILE.kind == SourceKind.HAND_SUBMITTED
    assert USER_PROFILE.feed_url is None


def test_profile_without_description_is_rejected() -> None:
    with pytest.raises(ValueError, match="description"):
        SourceProfile(name="BAD", field_mapping={"city": ("city",)})


def test_profile_with_unknown_field_is_rejected() -> None:
    with pytest.raises(ValueError, match="colour"):
        SourceProfile(name="BAD", field_mapping={"description": ("d",), "colour": ("c",)})


def test_candidates_for_unmapped_field_is_empty() -> None:
    profile = SourceProfile(name="MIN", field_mapping={"description": ("text",)})
    assert profile.candidates("shape") == ()


def test_custom_registry() -> None:
    profile = SourceProfile(name="Blue", field_mapping={"description": ("text",)})
    registry = ProfileRegistry([profile])
    assert registry.get("BLUE") is profile
    assert registry.names() == ["BLUE"]
