# tests/test_timers.py
from __future__ import annotations

import pytest
from sqlalchemy import select

from fellowship.core.config import settings
from fellowship.models.timer import Timer, TimerSegment

from helpers import auth_headers, count, create_event, create_user, fetch_all


async def _setup(db):
    organizer = await create_user(db, roles=["Editor"], first_name="Olive")
    speaker = await create_user(db, roles=["Member"], first_name="Sam")
    event = await create_event(db, creator=organizer)
    await db.commit()
    return organizer, speaker, event


async def _create_timer(client, organizer, speaker, event, total=600) -> dict:
    r = await client.post(
        f"/api/v1/events/{event.id}/timers",
        json={"label": "Sermon", "total_duration": total, "speaker_id": speaker.id},
        headers=auth_headers(organizer),
    )
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_create_timer_for_event(client, db):
    organizer, speaker, event = await _setup(db)

    timer = await _create_timer(client, organizer, speaker, event)
    assert timer["id"].startswith("timer_")
    assert timer["organizer_id"] == organizer.id
    assert timer["event_id"] == event.id

    r = await client.get(f"/api/v1/events/{event.id}/timers")
    assert [t["id"] for t in r.json()] == [timer["id"]]


@pytest.mark.asyncio
async def test_create_timer_checks(client, db):
    organizer, speaker, event = await _setup(db)
    url = f"/api/v1/events/{event.id}/timers"

    # not the event's creator and no edit_all_events
    r = await client.post(
        url,
        json={"label": "Sermon", "total_duration": 600, "speaker_id": speaker.id},
        headers=auth_headers(speaker),
    )
    assert r.status_code == 403

    for total in (0, settings.TIMER_MAX_DURATION_SECONDS + 1):
        r = await client.post(
            url,
            json={"label": "Sermon", "total_duration": total, "speaker_id": speaker.id},
            headers=auth_headers(organizer),
        )
        assert r.status_code == 400

    r = await client.post(
        url,
        json={"label": "Sermon", "total_duration": 600, "speaker_id": "user_nobody"},
        headers=auth_headers(organizer),
    )
    assert r.status_code == 404

    r = await client.post(
        "/api/v1/events/9999/timers",
        json={"label": "Sermon", "total_duration": 600, "speaker_id": speaker.id},
        headers=auth_headers(organizer),
    )
    assert r.status_code == 404

    assert await count(db, Timer) == 0


@pytest.mark.asyncio
async def test_segments_report_overrun_without_rejecting(client, db):
    organizer, speaker, event = await _setup(db)
    timer = await _create_timer(client, organizer, speaker, event, total=600)
    url = f"/api/v1/timers/{timer['id']}/segments"

    r = await client.post(url, json={"label": "Welcome", "duration": 300}, headers=auth_headers(organizer))
    assert r.status_code == 201
    assert r.json()["segment"]["order"] == 0
    assert r.json()["segment_total"] == 300
    assert r.json()["warnings"] == []

    r = await client.post(url, json={"label": "Message", "duration": 400}, headers=auth_headers(organizer))
    assert r.status_code == 201
    assert r.json()["segment"]["order"] == 1
    assert r.json()["segment_total"] == 700
    assert len(r.json()["warnings"]) == 1

    # a single segment longer than the whole timer is refused
    r = await client.post(url, json={"label": "Marathon", "duration": 601}, headers=auth_headers(organizer))
    assert r.status_code == 400
    r = await client.post(url, json={"label": "Nothing", "duration": 0}, headers=auth_headers(organizer))
    assert r.status_code == 400

    assert await count(db, TimerSegment) == 2

    # public detail view for the speaker
    r = await client.get(f"/api/v1/timers/{timer['id']}")
    assert r.status_code == 200
    detail = r.json()
    assert [s["label"] for s in detail["segments"]] == ["Welcome", "Message"]
    assert detail["segment_total"] == 700
    assert detail["warnings"]


@pytest.mark.asyncio
async def test_only_organizer_or_admin_edits_timer(client, db):
    organizer, speaker, event = await _setup(db)
    admin = await create_user(db, roles=["Admin"])
    await db.commit()
    timer = await _create_timer(client, organizer, speaker, event)
    url = f"/api/v1/timers/{timer['id']}"

    assert (await client.patch(url, json={"label": "Talk"})).status_code == 401
    assert (await client.patch(url, json={"label": "Talk"}, headers=auth_headers(speaker))).status_code == 403

    r = await client.patch(url, json={"label": "Talk", "total_duration": 900}, headers=auth_headers(organizer))
    assert r.status_code == 200
    assert (r.json()["label"], r.json()["total_duration"]) == ("Talk", 900)

    r = await client.post(f"{url}/segments", json={"label": "Intro", "duration": 60}, headers=auth_headers(speaker))
    assert r.status_code == 403

    r = await client.post(f"{url}/segments", json={"label": "Intro", "duration": 60}, headers=auth_headers(admin))
    assert r.status_code == 201
    segment_id = r.json()["segment"]["id"]

    r = await client.patch(
        f"{url}/segments/{segment_id}", json={"duration": 120, "order": 3}, headers=auth_headers(organizer)
    )
    assert r.status_code == 200
    assert (r.json()["segment"]["duration"], r.json()["segment"]["order"]) == (120, 3)

    assert (await client.delete(f"{url}/segments/{segment_id}", headers=auth_headers(speaker))).status_code == 403
    assert (await client.delete(f"{url}/segments/{segment_id}", headers=auth_headers(organizer))).status_code == 204
    assert (await client.delete(f"{url}/segments/{segment_id}", headers=auth_headers(organizer))).status_code == 404


@pytest.mark.asyncio
async def test_delete_timer_removes_segments(client, db):
    organizer, speaker, event = await _setup(db)
    timer = await _create_timer(client, organizer, speaker, event)
    url = f"/api/v1/timers/{timer['id']}"
    await client.post(f"{url}/segments", json={"label": "A", "duration": 60}, headers=auth_headers(organizer))
    await client.post(f"{url}/segments", json={"label": "B", "duration": 60}, headers=auth_headers(organizer))

    assert (await client.delete(url, headers=auth_headers(speaker))).status_code == 403
    assert (await client.delete(url, headers=auth_headers(organizer))).status_code == 204

    assert await fetch_all(db, select(Timer)) == []
    assert await count(db, TimerSegment) == 0
    assert (await client.get(url)).status_code == 404
