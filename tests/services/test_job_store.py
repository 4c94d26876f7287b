from datetime import UTC, datetime, timedelta

import pytest

from services.jobs.models import Job, JobInput, JobStatus
from services.jobs.store import JobStore


@pytest.fixture
def job_input(tshirt_category) -> JobInput:
    return JobInput(
        image_bytes=b"img",
        mime_type="image/jpeg",
        category=tshirt_category,
        model_id="gpt-4o",
    )


def test_pop_next_is_fifo(job_input):
    store = JobStore()
    for job_id in ("a", "b", "c"):
        store.add(Job(id=job_id, input=job_input))

    assert [store.pop_next().id for _ in range(3)] == ["a", "b", "c"]
    assert store.pop_next() is None
    # Popping only removes from the queue, not from storage
    assert len(store) == 3
    assert "b" in store


def test_pop_next_skips_evicted_ids(job_input):
    store = JobStore()
    stale = Job(id="stale", input=job_input, status=JobStatus.FAILED)
    store.add(stale)
    store.add(Job(id="fresh", input=job_input))
    stale.updated_at = datetime.now(UTC) - timedelta(hours=2)

    assert store.evict_finished(datetime.now(UTC) - timedelta(hours=1)) == 1
    assert store.pop_next().id == "fresh"
    assert store.queued == 0


def test_status_counts(job_input):
    store = JobStore()
    store.add(Job(id="a", input=job_input))
    store.add(Job(id="b", input=job_input, status=JobStatus.COMPLETED))
    store.add(Job(id="c", input=job_input, status=JobStatus.COMPLETED))

    counts = store.status_counts()

    assert counts[JobStatus.PENDING] == 1
    assert counts[JobStatus.COMPLETED] == 2
    assert counts[JobStatus.FAILED] == 0


def test_get_unknown_returns_none():
    assert JobStore().get("nope") is None


def test_job_input_repr_hides_image(job_input):
    assert "image_bytes" not in repr(job_input)
