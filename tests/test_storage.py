"""
Participant Loading Test Suite

Run: python -m pytest tests/test_storage.py -v
"""

import json
import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from secret_santa.errors import ConfigurationError
from secret_santa.storage import Participant, load_json, load_participants


def write(tmp_path: Path, data, name="participants.json") -> Path:
    path = tmp_path / name
    path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
    return path


class TestLoadParticipants:

    def test_plain_list(self, tmp_path):
        path = write(tmp_path, [
            {"uid": 1, "name": "Alice", "email": "alice@example.com", "group": "smiths"},
            {"uid": 2, "name": "Bob", "email": "bob@example.com"},
        ])

        participants = load_participants(path)

        assert participants == [
            Participant(uid="1", name="Alice", email="alice@example.com", group="smiths"),
            Participant(uid="2", name="Bob", email="bob@example.com", group=None),
        ]

    def test_wrapped_list_and_id_key(self, tmp_path):
        path = write(tmp_path, {"participants": [
            {"id": "a", "name": "Alice", "email": "alice@example.com"},
            {"id": "b", "name": "Bob", "email": "bob@example.com"},
        ]})

        assert [p.uid for p in load_participants(path)] == ["a", "b"]

    def test_order_is_preserved(self, tmp_path):
        entries = [{"uid": i, "name": f"P{i}", "email": f"p{i}@x.com"} for i in (5, 1, 3)]
        assert [p.name for p in load_participants(write(tmp_path, entries))] == ["P5", "P1", "P3"]

    def test_blank_group_means_no_group(self, tmp_path):
        path = write(tmp_path, [{"uid": 1, "name": "A", "email": "a@x.com", "group": "  "}])
        assert load_participants(path)[0].group is None

    def test_unicode_names(self, tmp_path):
        path = write(tmp_path, [{"uid": 1, "name": "Zoë 🎄", "email": "zoe@x.com"}])
        assert load_participants(path)[0].name == "Zoë 🎄"

    def test_single_participant_loads(self, tmp_path):
        """Count validation is the caller's job"""
        path = write(tmp_path, [{"uid": 1, "name": "A", "email": "a@x.com"}])
        assert len(load_participants(path)) == 1


class TestLoadErrors:

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_participants(tmp_path / "nope.json")

    def test_empty_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="empty"):
            load_json(write(tmp_path, ""))

    def test_invalid_json(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_participants(write(tmp_path, "[{"))

    def test_wrong_shape(self, tmp_path):
        with pytest.raises(ConfigurationError, match="list of participants"):
            load_participants(write(tmp_path, {"people": []}))

    def test_entry_not_object(self, tmp_path):
        with pytest.raises(ConfigurationError, match="#2 is not an object"):
            load_participants(write(tmp_path, [{"uid": 1, "name": "A", "email": "a@x.com"}, "Bob"]))

    def test_missing_fields(self, tmp_path):
        with pytest.raises(ConfigurationError, match="missing: uid, email"):
            load_participants(write(tmp_path, [{"name": "A"}]))

    @pytest.mark.parametrize("email", ["p1@x.com\nBcc: x@y.com", "p1@x.com\r\nBcc: z@y.com", "a@x.com\rb@y.com"])
    def test_line_break_in_email(self, tmp_path, email):
        path = write(tmp_path, [{"uid": 1, "name": "A", "email": email}])
        with pytest.raises(ConfigurationError, match="line break"):
            load_participants(path)

    @pytest.mark.parametrize("email", ["not an email", "no-at-sign", "Alice <a@x.com>"])
    def test_invalid_email(self, tmp_path, email):
        path = write(tmp_path, [{"uid": 1, "name": "A", "email": email}])
        with pytest.raises(ConfigurationError, match="invalid email"):
            load_participants(path)

    def test_duplicate_ids(self, tmp_path):
        path = write(tmp_path, [
            {"uid": 1, "name": "A", "email": "a@x.com"},
            {"uid": "1", "name": "B", "email": "b@x.com"},
        ])
        with pytest.raises(ConfigurationError, match="Duplicate participant ids: 1"):
            load_participants(path)
