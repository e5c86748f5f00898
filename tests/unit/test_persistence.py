"""
Tests for the content and performance stores.
"""

import json
from datetime import timedelta

import pytest

from conftest import START
from revision_quiz.errors import PersistenceFailed
from revision_quiz.models.learner_progression import PerformanceRecord, ProgressionState
from revision_quiz.utils.persistence import (
    InMemoryContentStore,
    InMemoryPerformanceStore,
    JsonContentStore,
    JsonPerformanceStore,
)

LEARNER = "learner-1"


def record(score, subject="math", offset=0, learner_id=LEARNER):
    created = START + timedelta(hours=offset)
    return PerformanceRecord(
        learner_id=learner_id,
        subject=subject,
        difficulty=1,
        level="college",
        score=score,
        passed=score >= 70,
        total_questions=4,
        correct_answers=2,
        created_at=created,
        finished_at=created + timedelta(minutes=9),
    )


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryPerformanceStore()
    return JsonPerformanceStore(tmp_path / "performance")


class TestContentStores:
    def test_in_memory(self, sample_resources):
        store = InMemoryContentStore(sample_resources[:1])
        store.add(sample_resources[1])

        assert [r.resource_id for r in store.fetch_resources("math", 5, 5)] == [
            "res-algebra", "res-functions",
        ]

    def test_json_catalogue(self, tmp_path):
        path = tmp_path / "resources.json"
        path.write_text(json.dumps({"resources": [
            {"id": "r2", "subject": "math", "difficulty": 2, "fileUrl": "https://x/2.pdf"},
            {"id": "r1", "subject": "math", "difficulty": 1, "file_url": "https://x/1.pdf",
             "language": "en", "tags": ["algebra"]},
            {"id": "bad", "subject": "math", "difficulty": 9, "file_url": "https://x/9.pdf"},
        ]}))

        resources = JsonContentStore(path).fetch_resources("math", 5, 10)

        assert [r.resource_id for r in resources] == ["r1", "r2"]
        assert resources[0].tags == ("algebra",)
        assert resources[1].file_url == "https://x/2.pdf"

    def test_json_catalogue_as_list(self, tmp_path, sample_resources):
        path = tmp_path / "resources.json"
        path.write_text(json.dumps([r.to_dict() for r in sample_resources]))

        resources = JsonContentStore(path).fetch_resources("physics", 5, 10)

        assert resources == [sample_resources[3]]

    def test_missing_catalogue_is_empty(self, tmp_path):
        assert JsonContentStore(tmp_path / "absent.json").fetch_resources("math", 5, 3) == []

    def test_corrupt_catalogue(self, tmp_path):
        path = tmp_path / "resources.json"
        path.write_text("{not json")

        with pytest.raises(PersistenceFailed):
            JsonContentStore(path).fetch_resources("math", 5, 3)


class TestPerformanceStore:
    def test_records_oldest_first(self, store):
        store.append_performance_record(record(80, offset=2))
        store.append_performance_record(record(60, offset=0))
        store.append_performance_record(record(70, offset=1))

        scores = [r.score for r in store.list_performance_records(LEARNER)]

        assert scores == [60, 70, 80]

    def test_filter_and_limit(self, store):
        for offset, (score, subject) in enumerate([(10, "math"), (20, "physics"), (30, "math"), (40, "math")]):
            store.append_performance_record(record(score, subject=subject, offset=offset))

        math = store.list_performance_records(LEARNER, subject="math")
        recent = store.list_performance_records(LEARNER, limit=2)

        assert [r.score for r in math] == [10, 30, 40]
        assert [r.score for r in recent] == [30, 40]

    def test_records_are_per_learner(self, store):
        store.append_performance_record(record(50, learner_id="other"))

        assert store.list_performance_records(LEARNER) == []

    def test_record_round_trip(self, store):
        original = record(75)
        store.append_performance_record(original)

        assert store.list_performance_records(LEARNER) == [original]

    def test_progression_read_write(self, store):
        assert store.read_learner_progression(LEARNER, "math") is None

        state = ProgressionState(LEARNER, "math", unlocked_level=3, average_score=81, attempts=4)
        store.write_learner_progression(LEARNER, "math", state)

        assert store.read_learner_progression(LEARNER, "math") == state
        progression = store.read_all_progression(LEARNER)
        assert progression.unlocked_level("math") == 3
        assert progression.subjects == ["math"]

    def test_update_progression(self, store):
        def bump(current):
            current = current or ProgressionState.initial(LEARNER, "math")
            return ProgressionState(LEARNER, "math", unlocked_level=current.unlocked_level + 1)

        store.update_progression(LEARNER, "math", bump)
        updated = store.update_progression(LEARNER, "math", bump)

        assert updated.unlocked_level == 3
        assert store.read_learner_progression(LEARNER, "math").unlocked_level == 3


class TestJsonPerformanceStore:
    def test_layout(self, tmp_path):
        store = JsonPerformanceStore(tmp_path)
        rec = record(90)
        store.append_performance_record(rec)
        store.write_learner_progression(LEARNER, "math", ProgressionState.initial(LEARNER, "math"))

        assert (tmp_path / LEARNER / "records" / f"{rec.record_id}.json").exists()
        states = json.loads((tmp_path / LEARNER / "progression.json").read_text())
        assert states["math"]["unlocked_level"] == 1

    def test_records_are_append_only(self, tmp_path):
        store = JsonPerformanceStore(tmp_path)
        rec = record(90)
        store.append_performance_record(rec)

        with pytest.raises(PersistenceFailed):
            store.append_performance_record(rec)

    def test_corrupt_record(self, tmp_path):
        store = JsonPerformanceStore(tmp_path)
        records_dir = tmp_path / LEARNER / "records"
        records_dir.mkdir(parents=True)
        (records_dir / "perf-broken.json").write_text(json.dumps({"score": 10}))

        with pytest.raises(PersistenceFailed):
            store.list_performance_records(LEARNER)

    def test_learner_id_with_path_characters(self, tmp_path):
        store = JsonPerformanceStore(tmp_path / "store")

        store.append_performance_record(record(70, learner_id="../escape"))

        assert not (tmp_path / "escape").exists()
        assert [p.name for p in (tmp_path / "store").iterdir()] == ["..%2Fescape"]
        assert [r.score for r in store.list_performance_records("../escape")] == [70]

    def test_email_learner_id(self, tmp_path):
        store = JsonPerformanceStore(tmp_path)
        learner_id = "ana+revision@example.com"

        store.append_performance_record(record(81, learner_id=learner_id))
        store.write_learner_progression(
            learner_id, "math", ProgressionState(learner_id, "math", unlocked_level=2, average_score=81)
        )

        assert [r.score for r in store.list_performance_records(learner_id)] == [81]
        assert store.read_learner_progression(learner_id, "math").unlocked_level == 2
        assert store.read_all_progression(learner_id).unlocked_level("math") == 2

    @pytest.mark.parametrize("learner_id", ["", ".", ".."])
    def test_unusable_learner_id(self, tmp_path, learner_id):
        store = JsonPerformanceStore(tmp_path)

        with pytest.raises(PersistenceFailed):
            store.list_performance_records(learner_id)

    def test_survives_new_instance(self, tmp_path):
        JsonPerformanceStore(tmp_path).append_performance_record(record(64))

        assert [r.score for r in JsonPerformanceStore(tmp_path).list_performance_records(LEARNER)] == [64]
