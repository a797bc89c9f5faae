"""
Tests for the inspection CLI.
"""

import json

import pytest

from sidequest.cli import build_parser, main
from sidequest.state.schema import SessionContext
from sidequest.state.store import SessionContextStore
from sidequest.state.recorder import record_attempt

from conftest import make_attempt


@pytest.fixture
def data_dir(tmp_path):
    store = SessionContextStore(tmp_path)
    context = SessionContext(campaign_id="camp-1")
    context = record_attempt(context, make_attempt(
        "q1", quest_title="Meridian Line", success=False, feedback=["Too dark"],
    ))
    store.save(context)
    return tmp_path


def run(data_dir, *argv) -> int:
    return main(["--data-dir", str(data_dir), *argv])


class TestParser:
    """Tests for argument parsing."""

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_hint_quest_option(self):
        args = build_parser().parse_args(["hint", "camp-1", "--quest", "q2"])
        assert args.quest == "q2"
        assert args.campaign_id == "camp-1"


class TestCommands:
    """Tests for each subcommand."""

    def test_list(self, data_dir, capsys):
        assert run(data_dir, "list") == 0
        assert "camp-1" in capsys.readouterr().out

    def test_show(self, data_dir, capsys):
        assert run(data_dir, "show", "camp-1") == 0
        out = capsys.readouterr().out
        assert "CAMPAIGN MEMORY" in out
        assert "Meridian Line" in out

    def test_show_unknown_campaign(self, data_dir):
        assert run(data_dir, "show", "camp-404") == 1

    def test_show_does_not_create(self, data_dir):
        run(data_dir, "show", "camp-404")
        assert not SessionContextStore(data_dir).exists("camp-404")

    def test_hint(self, data_dir, capsys):
        assert run(data_dir, "hint", "camp-1", "--quest", "q1") == 0
        assert "THIS QUEST: 1 attempt(s) so far." in capsys.readouterr().out

    def test_tokens(self, data_dir, capsys):
        assert run(data_dir, "tokens", "camp-1") == 0
        out = capsys.readouterr().out
        assert "base text" in out
        assert "total" in out

    def test_show_with_campaign_file(self, data_dir, campaign, capsys):
        path = data_dir / "campaign.json"
        path.write_text(campaign.model_dump_json())
        assert run(data_dir, "show", "camp-1", "--campaign", str(path)) == 0
        assert "Location: Greenwich, London" in capsys.readouterr().out

    def test_replay(self, data_dir, capsys):
        trace = data_dir / "trace.json"
        trace.write_text(json.dumps([
            {"lat": 51.5, "lng": -0.12, "accuracy": 8, "timestamp": "2025-06-01T10:00:00"},
            {"lat": 51.501, "lng": -0.12, "accuracy": 8, "timestamp": "2025-06-01T10:02:00"},
        ]))
        assert run(data_dir, "replay", str(trace), "--json") == 0
        stats = json.loads(capsys.readouterr().out)
        assert len(stats["path_points"]) == 2

    def test_replay_empty(self, data_dir):
        assert run(data_dir, "replay", str(data_dir / "missing.json")) == 1

    def test_reset(self, data_dir):
        assert run(data_dir, "reset", "camp-1") == 0
        assert SessionContextStore(data_dir).load("camp-1") is None
