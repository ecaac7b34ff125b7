"""Unit tests for reference corpus loading."""

import pytest

from tvrename.core.errors import SubtitleError
from tvrename.matcher import reference
from tvrename.matcher.reference import (
    load_reference_corpus,
    parse_season_episode,
    reference_folder,
)


@pytest.mark.unit
class TestParseSeasonEpisode:
    @pytest.mark.parametrize(
        "filename,season,episodes",
        [
            ("Firefly - s01e02.srt", 1, [2]),
            ("Firefly - S01E02.srt", 1, [2]),
            ("firefly.1x02.srt", None, None),
            ("Firefly - s01x02.srt", 1, [2]),
            ("Firefly - s01e08-e09.srt", 1, [8, 9]),
            ("Firefly - s01e02e04.srt", 1, [2, 3, 4]),
            ("Firefly - s00e01.txt", 0, [1]),
            ("notes.srt", None, None),
        ],
    )
    def test_parse(self, filename, season, episodes):
        info = parse_season_episode(filename)

        if season is None:
            assert info is None
        else:
            assert info.season == season
            assert info.episodes == episodes


@pytest.mark.unit
class TestLoadReferenceCorpus:
    def test_reference_folder(self, season_folder, reference_dir):
        assert reference_folder(season_folder) == reference_dir

    def test_missing_reference_folder(self, season_folder):
        assert load_reference_corpus(season_folder, 1) == []

    def test_loads_and_sorts(self, season_folder, reference_dir, write_srt):
        write_srt(reference_dir / "Firefly - s01e10.srt", ["Ten"])
        write_srt(reference_dir / "Firefly - s01e02.srt", ["- MAL: Two?", "[thunder] Two!"])
        write_srt(reference_dir / "Firefly - s01e01.srt", ["One"])

        corpus = load_reference_corpus(season_folder, 1)

        assert [e.episodes for e in corpus] == [[1], [2], [10]]
        assert corpus[1].text == "two? two!"
        assert corpus[1].line_count == 2
        assert corpus[1].source == reference_dir / "Firefly - s01e02.srt"

    def test_skips_other_seasons_and_unlabeled_files(self, season_folder, reference_dir, write_srt):
        write_srt(reference_dir / "Firefly - s01e01.srt", ["One"])
        write_srt(reference_dir / "Firefly - s02e01.srt", ["Other season"])
        write_srt(reference_dir / "extras.srt", ["Commentary"])

        corpus = load_reference_corpus(season_folder, 1)

        assert [e.episode_info.s_e_format for e in corpus] == ["s01e01"]

    def test_skips_empty_files(self, season_folder, reference_dir, write_srt):
        write_srt(reference_dir / "Firefly - s01e01.srt", ["One"])
        write_srt(reference_dir / "Firefly - s01e02.srt", ["[music]", "♪ ♪"])
        (reference_dir / "Firefly - s01e04.srt").write_bytes(b"")

        corpus = load_reference_corpus(season_folder, 1)

        assert [e.episodes for e in corpus] == [[1]]

    def test_skips_unreadable_files(self, season_folder, reference_dir, write_srt, monkeypatch):
        write_srt(reference_dir / "Firefly - s01e01.srt", ["One"])
        write_srt(reference_dir / "Firefly - s01e02.srt", ["Two"])
        real_read = reference.read_subtitle_lines

        def read(path):
            if path.name.endswith("s01e01.srt"):
                raise SubtitleError(f"Cannot read {path}")
            return real_read(path)

        monkeypatch.setattr(reference, "read_subtitle_lines", read)

        corpus = load_reference_corpus(season_folder, 1)

        assert [e.episodes for e in corpus] == [[2]]

    def test_plain_text_reference(self, season_folder, reference_dir):
        (reference_dir / "Firefly - s01e03.txt").write_text("Line one\nLine two\n")

        corpus = load_reference_corpus(season_folder, 1)

        assert corpus[0].text == "line one line two"
