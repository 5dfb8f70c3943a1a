"""Approved snapshot recorder."""
import pytest
from sqlalchemy.orm import Session

from app.models import Chapter, ManuscriptVersion
from app.services import manuscripts, snapshots


class TestCollation:
    def test_labels(self):
        assert snapshots.chapter_label(0) == "Prologue"
        assert snapshots.chapter_label(7) == "Chapter 7"

    def test_collate_joins_with_separator(self):
        chapters = [
            Chapter(chapter_number=0, title="Before", content="Once."),
            Chapter(chapter_number=1, title="Start", content="Then more."),
        ]
        assert snapshots.collate_chapters(chapters) == (
            "# Prologue: Before\n\nOnce.\n\n---\n\n# Chapter 1: Start\n\nThen more."
        )

    def test_count_words_splits_on_whitespace_runs(self):
        assert snapshots.count_words("  one\ttwo\n\nthree   ") == 3
        assert snapshots.count_words("") == 0
        assert snapshots.count_words(None) == 0


class TestApprovedSnapshot:
    def test_snapshot_covers_chapters_in_order(self, db: Session, manuscript):
        # Added out of order on purpose
        manuscripts.create_chapter(db, manuscript, 0, title="Opening", content="A quiet prologue.")

        assert snapshots.create_approved_snapshot(db, manuscript.id, 1) is True

        version = db.query(ManuscriptVersion).filter(ManuscriptVersion.manuscript_id == manuscript.id).one()
        assert version.version_type == "approved_snapshot"
        assert version.phase_number == 1
        assert version.created_by_editor == "Alex"
        assert version.content.startswith("# Prologue: Opening\n\nA quiet prologue.")
        assert version.content.index("# Chapter 1") < version.content.index("# Chapter 3")
        assert version.word_count == len(version.content.split())

    def test_get_returns_newest_content(self, db: Session, manuscript):
        assert snapshots.get_approved_snapshot(db, manuscript.id, 2) is None
        snapshots.create_approved_snapshot(db, manuscript.id, 2, editor_name="Sam")
        content = snapshots.get_approved_snapshot(db, manuscript.id, 2)
        assert "# Chapter 2: Part 2" in content

    def test_versions_are_write_once(self, db: Session, manuscript):
        snapshots.create_approved_snapshot(db, manuscript.id, 1)
        version = db.query(ManuscriptVersion).first()

        version.content = "rewritten"
        with pytest.raises(ValueError):
            db.commit()
        db.rollback()

        db.refresh(version)
        assert version.content != "rewritten"
