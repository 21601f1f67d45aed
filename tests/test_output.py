"""Tests for nowplaying.output -- formatting of records and now-playing states."""

from __future__ import annotations

import json

import pytest

from nowplaying.models import CurrentlyPlaying
from nowplaying.output import OutputFormat, OutputManager, format_clock
from nowplaying.poll import PollState


def _playing(progress_ms: int = 61_000) -> CurrentlyPlaying:
    return CurrentlyPlaying.model_validate(
        {
            "is_playing": True,
            "progress_ms": progress_ms,
            "item": {
                "name": "Song One",
                "duration_ms": 244_000,
                "artists": [{"name": "Artist A"}, {"name": "Artist B"}],
                "album": {"name": "Album X"},
            },
        }
    )


class TestFormatClock:
    @pytest.mark.parametrize(
        "ms, expected",
        [(0, "0:00"), (999, "0:00"), (61_000, "1:01"), (244_000, "4:04"), (-5, "0:00")],
    )
    def test_values(self, ms: int, expected: str) -> None:
        assert format_clock(ms) == expected


class TestFormatResponse:
    def test_json(self, capsys) -> None:
        OutputManager(format=OutputFormat.JSON).format_response({"logged_in": True})
        assert json.loads(capsys.readouterr().out) == {"logged_in": True}

    def test_plain(self, capsys) -> None:
        OutputManager(format=OutputFormat.PLAIN).format_response({"logged_in": False, "n": 1})
        assert capsys.readouterr().out == "logged_in\tFalse\nn\t1\n"


class TestRenderNowPlaying:
    def test_plain_track(self, capsys) -> None:
        output = OutputManager(format=OutputFormat.PLAIN)
        output.render_now_playing(PollState(data=_playing(), ticks=1))

        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "Song One - Artist A, Artist B"
        assert lines[1] == "Album: Album X"
        assert lines[2].endswith("1:01 / 4:04")
        assert len(lines) == 3

    def test_plain_nothing_playing(self, capsys) -> None:
        OutputManager(format=OutputFormat.PLAIN).render_now_playing(PollState())
        assert capsys.readouterr().out == "Nothing playing.\n"

    def test_plain_error_under_stale_data(self, capsys) -> None:
        output = OutputManager(format=OutputFormat.PLAIN)
        output.render_now_playing(PollState(data=_playing(), error="Currently playing failed: 500 x"))
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "Song One - Artist A, Artist B"
        assert lines[-1] == "Error: Currently playing failed: 500 x"

    def test_plain_lyrics(self, capsys) -> None:
        output = OutputManager(format=OutputFormat.PLAIN)
        output.render_now_playing(
            PollState(data=_playing()), "https://genius.com/songs/42/embed", 625.0
        )
        out = capsys.readouterr().out
        assert "Lyrics: https://genius.com/songs/42/embed (scroll 625px)" in out

    def test_json_record(self, capsys) -> None:
        output = OutputManager(format=OutputFormat.JSON)
        output.render_now_playing(PollState(data=_playing(), error=None), "https://lyrics")
        record = json.loads(capsys.readouterr().out)
        assert record["data"]["item"]["name"] == "Song One"
        assert record["error"] is None
        assert record["lyrics_url"] == "https://lyrics"

    def test_json_nothing_playing(self, capsys) -> None:
        OutputManager(format=OutputFormat.JSON).render_now_playing(PollState(error="boom"))
        assert json.loads(capsys.readouterr().out) == {
            "data": None,
            "error": "boom",
            "lyrics_url": None,
            "lyrics_error": None,
        }

    def test_rich_panel(self, capsys) -> None:
        output = OutputManager(format=OutputFormat.RICH, no_color=True)
        output.render_now_playing(PollState(data=_playing(), error="net error"))
        out = capsys.readouterr().out
        assert "Now Playing" in out
        assert "Song One" in out
        assert "net error" in out


class TestDiagnostics:
    def test_quiet_suppresses_info(self, capsys) -> None:
        output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
        output.info("hello")
        output.error("bad")
        err = capsys.readouterr().err
        assert "hello" not in err
        assert "Error: bad" in err


class TestLyricsLine:
    def test_plain_lyrics_error(self, capsys) -> None:
        output = OutputManager(format=OutputFormat.PLAIN)
        output.render_now_playing(PollState(data=_playing()), lyrics_error="Lyrics not found")
        assert capsys.readouterr().out.splitlines()[-1] == "Lyrics: Lyrics not found"

    def test_url_wins_over_error(self, capsys) -> None:
        output = OutputManager(format=OutputFormat.PLAIN)
        output.render_now_playing(
            PollState(data=_playing()), "https://lyrics", lyrics_error="Failed to fetch lyrics"
        )
        out = capsys.readouterr().out
        assert "Lyrics: https://lyrics" in out
        assert "Failed to fetch lyrics" not in out

    def test_json_lyrics_error(self, capsys) -> None:
        output = OutputManager(format=OutputFormat.JSON)
        output.render_now_playing(PollState(data=_playing()), lyrics_error="Lyrics not configured")
        assert json.loads(capsys.readouterr().out)["lyrics_error"] == "Lyrics not configured"

    def test_rich_lyrics_error(self, capsys) -> None:
        output = OutputManager(format=OutputFormat.RICH, no_color=True)
        output.render_now_playing(PollState(data=_playing()), lyrics_error="Lyrics not found")
        assert "Lyrics not found" in capsys.readouterr().out
