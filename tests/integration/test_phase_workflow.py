"""Phase state machine through the service layer and the API."""
import pytest
from sqlalchemy.exc import IntegrityError

from app.db.types import utcnow
from app.models import EditingPhase, ManuscriptVersion
from app.services import manuscripts, phases, publishing
from app.services.snapshots import SECTION_SEPARATOR
from tests.helpers import approve_all, headers_for

BASE = "/api/v1/manuscripts"


def _statuses(db, manuscript_id):
    db.expire_all()
    return {p.phase_number: p.phase_status for p in phases.get_all_phases(db, manuscript_id)}


def test_new_manuscript_starts_at_phase_one(db, manuscript):
    assert _statuses(db, manuscript.id) == {
        1: "active",
        2: "pending",
        3: "pending",
        4: "pending",
        5: "pending",
    }
    assert manuscript.current_phase_number == 1
    assert manuscript.total_chapters == 3
    assert manuscript.current_word_count == 13


def test_transition_blocked_until_every_chapter_approved(db, manuscript):
    chapters = manuscripts.list_chapters(db, manuscript.id)
    for chapter in chapters[:2]:
        assert phases.approve_chapter(db, chapter.id, 1)

    assert phases.are_all_chapters_approved(db, manuscript.id, 1) is False
    assert phases.transition_to_next_phase(db, manuscript.id, 1) is False
    assert _statuses(db, manuscript.id)[1] == "active"
    assert manuscripts.get_manuscript(db, manuscript.id).current_phase_number == 1

    assert phases.approve_chapter(db, chapters[2].id, 1)
    assert phases.transition_to_next_phase(db, manuscript.id, 1) is True

    statuses = _statuses(db, manuscript.id)
    assert statuses[1] == "complete"
    assert statuses[2] == "active"
    assert list(statuses.values()).count("active") == 1

    completed = phases.get_all_phases(db, manuscript.id)[0]
    assert completed.chapters_approved == 3
    assert completed.completed_at is not None
    assert manuscripts.get_manuscript(db, manuscript.id).current_phase_number == 2


def test_manuscript_without_chapters_cannot_advance(db, author):
    empty = manuscripts.create_manuscript(db, author.id, title="Blank")
    assert phases.are_all_chapters_approved(db, empty.id, 1) is False
    assert phases.transition_to_next_phase(db, empty.id, 1) is False


def test_only_the_active_phase_can_transition(db, manuscript):
    approve_all(db, manuscript.id, 1)
    approve_all(db, manuscript.id, 2)
    assert phases.transition_to_next_phase(db, manuscript.id, 2) is False
    assert _statuses(db, manuscript.id)[2] == "pending"


def test_last_phase_has_no_successor(db, manuscript):
    assert phases.transition_to_next_phase(db, manuscript.id, 5) is False
    assert phases.transition_to_next_phase(db, manuscript.id, 0) is False


def test_approval_rejects_non_editing_phases(db, manuscript):
    chapter = manuscripts.list_chapters(db, manuscript.id)[0]
    assert phases.approve_chapter(db, chapter.id, 4) is False
    assert phases.are_all_chapters_approved(db, manuscript.id, 4) is False


def test_approval_with_edited_content_updates_word_count(db, manuscript):
    chapter = manuscripts.list_chapters(db, manuscript.id)[0]
    assert phases.approve_chapter(db, chapter.id, 1, content="A much shorter night")
    db.refresh(chapter)
    assert chapter.content == "A much shorter night"
    assert chapter.word_count == 4
    assert chapter.phase_1_approved_at is not None


def test_publishing_phase_gated_on_pre_launch(db, manuscript):
    for number in (1, 2, 3):
        approve_all(db, manuscript.id, number)
        assert phases.transition_to_next_phase(db, manuscript.id, number)

    assert _statuses(db, manuscript.id)[4] == "active"
    publishing.initialize_publishing_progress(db, manuscript.id)
    assert phases.transition_to_next_phase(db, manuscript.id, 4) is False

    progress = publishing.get_publishing_progress(db, manuscript.id)
    progress.all_steps_completed_at = utcnow()
    db.commit()

    assert phases.transition_to_next_phase(db, manuscript.id, 4) is True
    assert _statuses(db, manuscript.id)[5] == "active"


def test_complete_phase_records_snapshot_atomically(db, manuscript):
    approve_all(db, manuscript.id, 1)

    assert phases.complete_phase(db, manuscript.id, 1) is True

    versions = db.query(ManuscriptVersion).filter(ManuscriptVersion.manuscript_id == manuscript.id).all()
    assert len(versions) == 1
    snapshot = versions[0]
    assert snapshot.version_type == "approved_snapshot"
    assert snapshot.created_by_editor == "Alex"
    assert snapshot.notes == "Alex phase complete - all chapters approved"
    assert snapshot.content.split(SECTION_SEPARATOR) == [
        "# Chapter 1: Part 1\n\nIt was a dark night.",
        "# Chapter 2: Part 2\n\nThe storm broke at dawn.",
        "# Chapter 3: Part 3\n\nEveryone went home.",
    ]
    assert _statuses(db, manuscript.id)[2] == "active"


def test_failed_completion_writes_no_snapshot(db, manuscript):
    assert phases.complete_phase(db, manuscript.id, 1) is False
    assert db.query(ManuscriptVersion).count() == 0


def test_snapshots_cannot_be_edited(db, manuscript):
    approve_all(db, manuscript.id, 1)
    phases.complete_phase(db, manuscript.id, 1, editor_name="Alex")
    snapshot = db.query(ManuscriptVersion).first()

    snapshot.content = "rewritten history"
    with pytest.raises(ValueError, match="immutable"):
        db.commit()
    db.rollback()


def test_single_active_phase_enforced_by_database(db, manuscript):
    second = db.query(EditingPhase).filter_by(manuscript_id=manuscript.id, phase_number=2).one()
    second.phase_status = "active"
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


# ──────── API ────────


def test_transition_endpoint(client, db, manuscript, auth_headers):
    url = f"{BASE}/{manuscript.id}/phases/1/transition"
    response = client.post(url, headers=auth_headers)
    assert response.status_code == 409

    approve_all(db, manuscript.id, 1)
    response = client.post(url, headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "completed_phase": 1, "active_phase": 2}

    active = client.get(f"{BASE}/{manuscript.id}/phases/active", headers=auth_headers)
    assert active.json()["phase_number"] == 2
    assert active.json()["editor_name"] == "Sam"


def test_complete_endpoint_and_snapshot_read(client, db, manuscript, auth_headers):
    approve_all(db, manuscript.id, 1)
    response = client.post(
        f"{BASE}/{manuscript.id}/phases/1/complete",
        json={"editor_name": "Alex"},
        headers=auth_headers,
    )
    assert response.status_code == 200

    snapshot = client.get(f"{BASE}/{manuscript.id}/phases/1/snapshot", headers=auth_headers)
    assert snapshot.status_code == 200
    assert snapshot.json()["content"].startswith("# Chapter 1: Part 1")

    missing = client.get(f"{BASE}/{manuscript.id}/phases/2/snapshot", headers=auth_headers)
    assert missing.status_code == 404


def test_approval_endpoint(client, db, manuscript, auth_headers):
    chapters = client.get(f"{BASE}/{manuscript.id}/chapters", headers=auth_headers).json()
    for chapter in chapters:
        response = client.post(
            f"{BASE}/{manuscript.id}/chapters/{chapter['id']}/approve",
            json={"phase_number": 1},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["phase_1_approved_at"] is not None

    status = client.get(f"{BASE}/{manuscript.id}/phases/1/approval", headers=auth_headers)
    assert status.json() == {"phase_number": 1, "all_chapters_approved": True}


def test_list_phases(client, manuscript, auth_headers):
    response = client.get(f"{BASE}/{manuscript.id}/phases", headers=auth_headers)
    assert response.status_code == 200
    assert [p["editor_name"] for p in response.json()] == [
        "Alex",
        "Sam",
        "Jordan",
        "Publishing Agent",
        "Marketing Agent",
    ]


def test_unknown_phase_number(client, manuscript, auth_headers):
    response = client.post(f"{BASE}/{manuscript.id}/phases/9/transition", headers=auth_headers)
    assert response.status_code == 404


def test_unpaid_author_needs_upgrade(client, db, unpaid_author):
    own = manuscripts.create_manuscript(db, unpaid_author.id, title="Mine")
    response = client.post(f"{BASE}/{own.id}/phases/1/transition", headers=headers_for(unpaid_author))
    assert response.status_code == 403
    assert response.json()["detail"] == "Upgrade required for phase 1"


def test_other_authors_manuscript_forbidden(client, manuscript, unpaid_author):
    response = client.get(f"{BASE}/{manuscript.id}/phases", headers=headers_for(unpaid_author))
    assert response.status_code == 403


def test_admin_can_view_any_manuscript(client, manuscript, admin_headers):
    response = client.get(f"{BASE}/{manuscript.id}/phases", headers=admin_headers)
    assert response.status_code == 200


def test_purchased_phase_activation_respects_order(db, manuscript):
    # Phase 1 still active: nothing to activate
    assert phases.activate_purchased_phases(db, manuscript.id, "publishing") == []

    for phase in phases.get_all_phases(db, manuscript.id):
        phase.phase_status = "complete" if phase.phase_number <= 3 else "pending"
    db.commit()

    assert phases.activate_purchased_phases(db, manuscript.id, "complete") == [4]
    assert _statuses(db, manuscript.id)[5] == "pending"
    assert manuscripts.get_manuscript(db, manuscript.id).current_phase_number == 4

    # Editing package activates nothing
    assert phases.activate_purchased_phases(db, manuscript.id, "three-phase") == []
