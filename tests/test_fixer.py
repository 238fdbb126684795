import io
import logging
import zipfile

import pytest
from mutagen.id3 import ID3

from fixvox.fixer import TrackFixer
from fixvox.processor import FileProcessor

from mp3data import FRAME_DURATION, frames, write_mp3, write_zip


def _tagged(tmp_path, name, n_frames, **tags):
    path = write_mp3(tmp_path / "src" / name, n_frames, **tags)
    return path.read_bytes()


@pytest.fixture(autouse=True)
def _src(tmp_path):
    (tmp_path / "src").mkdir()


@pytest.fixture
def fixer(cfg, logger):
    f = TrackFixer(cfg, logger, {"samuel clemens": "Mark Twain"})
    yield f
    f.close()


def _zip_bytes(members):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    buf.seek(0)
    return buf


def test_tracks_are_tagged_and_renamed(fixer, cfg, tmp_path):
    members = {
        "tomsawyer_02_twain.mp3": _tagged(tmp_path, "b.mp3", 3, album="Tom Sawyer", artist="Mark Twain"),
        "tomsawyer_01_twain.mp3": _tagged(tmp_path, "a.mp3", 5, album="Tom Sawyer", artist="Mark Twain"),
        "readme.txt": b"hello",
    }
    work = tmp_path / "work"
    work.mkdir()

    assert fixer.transform(_zip_bytes(members), work) is True

    album_dir = cfg.output_dir / "Mark Twain" / "Tom Sawyer"
    assert sorted(p.name for p in album_dir.iterdir()) == ["1.mp3", "2.mp3"]

    first = ID3(str(album_dir / "1.mp3"))
    assert str(first["TRCK"]) == "1/2"
    assert str(first["TPOS"]) == "1/1"
    assert str(first["TPUB"]) == "LibriVox"
    assert str(first["TCON"]) == "Audiobook"
    assert str(first["TALB"]) == "Tom Sawyer"
    assert int(str(first["TLEN"])) == round(5 * FRAME_DURATION * 1000)

    second = ID3(str(album_dir / "2.mp3"))
    assert int(str(second["TLEN"])) == round(3 * FRAME_DURATION * 1000)


def test_track_numbers_are_zero_padded(fixer, cfg, tmp_path):
    members = {f"part{i:02d}.mp3": frames(1) for i in range(1, 12)}
    work = tmp_path / "work"
    work.mkdir()

    fixer.transform(_zip_bytes(members), work)

    album_dir = cfg.output_dir / "Unknown" / "part01"
    names = sorted(p.name for p in (cfg.output_dir / "Unknown").glob("*/*.mp3"))
    assert "01.mp3" in names and "11.mp3" in names
    assert str(ID3(str(album_dir / "01.mp3"))["TRCK"]) == "01/11"


def test_album_artist_and_mapping(fixer, cfg, tmp_path):
    members = {
        "1.mp3": _tagged(tmp_path, "a.mp3", 1, album="Life: on the Mississippi", artist="Reader", album_artist="Samuel Clemens"),
    }
    work = tmp_path / "work"
    work.mkdir()

    fixer.transform(_zip_bytes(members), work)

    assert (cfg.output_dir / "Mark Twain" / "Life on the Mississippi" / "1.mp3").exists()


def test_untagged_tracks_use_entry_name(fixer, cfg, tmp_path):
    members = {"disc/Chapter One.MP3": frames(2)}
    work = tmp_path / "work"
    work.mkdir()

    fixer.transform(_zip_bytes(members), work)

    track = cfg.output_dir / "Unknown" / "Chapter One" / "1.mp3"
    assert track.exists()
    assert int(str(ID3(str(track))["TLEN"])) == round(2 * FRAME_DURATION * 1000)


def test_archive_without_tracks_is_excluded(fixer, tmp_path):
    work = tmp_path / "work"
    work.mkdir()
    assert fixer.transform(_zip_bytes({"readme.txt": b"x"}), work) is False


def test_corrupt_archive_raises(fixer, tmp_path):
    work = tmp_path / "work"
    work.mkdir()
    with pytest.raises(zipfile.BadZipFile):
        fixer.transform(io.BytesIO(b"not a zip at all"), work)


def test_existing_track_is_replaced(fixer, cfg, tmp_path):
    album_dir = cfg.output_dir / "Mark Twain" / "Tom Sawyer"
    album_dir.mkdir(parents=True)
    (album_dir / "1.mp3").write_bytes(b"stale")

    members = {"a.mp3": _tagged(tmp_path, "a.mp3", 2, album="Tom Sawyer", artist="Mark Twain")}
    work = tmp_path / "work"
    work.mkdir()

    fixer.transform(_zip_bytes(members), work)

    data = (album_dir / "1.mp3").read_bytes()
    assert data != b"stale"
    assert str(ID3(str(album_dir / "1.mp3"))["TRCK"]) == "1/1"
    assert list(work.iterdir()) == []


def test_batch_end_to_end(cfg, logger, tmp_path):
    inbox = tmp_path / "inbox"
    inbox.mkdir()
    archives = []
    for book in ("Tom Sawyer", "Huckleberry Finn"):
        members = {
            f"{book}_{i}.mp3": _tagged(tmp_path, f"{book}{i}.mp3", i, album=book, artist="Mark Twain")
            for i in range(1, 4)
        }
        archives.append(write_zip(inbox / f"{book}.zip", members))

    with TrackFixer(cfg, logger) as fixer, FileProcessor(cfg, logger) as processor:
        result = processor.process_files([str(inbox)], fixer.transform)
        scope = processor.temp_dirs.scope_dir

    assert sorted(result) == sorted(a.resolve() for a in archives)
    tracks = sorted((cfg.output_dir / "Mark Twain").glob("*/*.mp3"))
    assert len(tracks) == 6
    assert not scope.exists()


class _Records(logging.Handler):
    def __init__(self):
        super().__init__(logging.WARNING)
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


def test_same_destination_twice_is_logged(fixer, logger, cfg, tmp_path):
    work = tmp_path / "work"
    work.mkdir()
    dest = cfg.output_dir / "Unknown" / "Book" / "1.mp3"
    dest.parent.mkdir(parents=True)
    records = _Records()
    logger.addHandler(records)
    try:
        first = work / "first.mp3"
        first.write_bytes(b"first")
        fixer.place(first, dest, work)
        assert records.messages == []

        second = work / "second.mp3"
        second.write_bytes(b"second")
        fixer.place(second, dest, work)
    finally:
        logger.removeHandler(records)

    assert dest.read_bytes() == b"second"
    assert len(records.messages) == 1
    assert "already written" in records.messages[0]
