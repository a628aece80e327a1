from typearena.core.ranking import (
    LeaderboardEntry,
    merge_entry,
    ranked_rows,
    sort_entries,
    summarize,
)


def entry(name, wpm, accuracy, result_id=None):
    return LeaderboardEntry(
        name=name,
        class_name="9A",
        wpm=wpm,
        accuracy=accuracy,
        correct_words=1,
        total_words=2,
        result_id=result_id,
    )


class TestOrdering:
    def test_wpm_then_accuracy(self):
        rows = sort_entries([entry("a", 40, 90), entry("b", 50, 80), entry("c", 40, 95)])
        assert [r.name for r in rows] == ["b", "c", "a"]

    def test_full_ties_keep_arrival_order(self):
        rows = sort_entries([entry("first", 40, 90), entry("second", 40, 90)])
        assert [r.name for r in rows] == ["first", "second"]

    def test_merge_resorts(self):
        rows = sort_entries([entry("a", 40, 90), entry("b", 30, 90)])
        merged = merge_entry(rows, entry("new", 35, 99))
        assert [r.name for r in merged] == ["a", "new", "b"]

    def test_merge_skips_known_result_id(self):
        rows = [entry("a", 40, 90, result_id=1)]
        assert len(merge_entry(rows, entry("a", 40, 90, result_id=1))) == 1
        assert len(merge_entry(rows, entry("b", 40, 90, result_id=2))) == 2

    def test_merge_without_ids_keeps_identical_rows(self):
        rows = [entry("a", 40, 90)]
        assert len(merge_entry(rows, entry("a", 40, 90))) == 2

    def test_rank_comes_from_position(self):
        rows = ranked_rows(sort_entries([entry("a", 10, 90), entry("b", 20, 90)]))
        assert [(r["rank"], r["name"]) for r in rows] == [(1, "b"), (2, "a")]


class TestPayloads:
    def test_from_store_record(self):
        record = {
            "name": "Ana",
            "class_name": "9A",
            "wpm": 42,
            "accuracy": 97,
            "total_words": 20,
            "correct_words": 18,
            "time_taken": 60,
            "completed_at": "2026-01-01T00:00:00+00:00",
        }
        payload = LeaderboardEntry.from_payload(record).to_payload()
        assert payload == {
            "name": "Ana",
            "class": "9A",
            "wpm": 42.0,
            "accuracy": 97.0,
            "correctWords": 18,
            "totalWords": 20,
            "timeTaken": 60,
            "completedAt": "2026-01-01T00:00:00+00:00",
            "resultId": None,
        }

    def test_from_channel_summary(self):
        summary = {"name": "Bo", "class": "9B", "wpm": 30, "accuracy": 80, "totalWords": 5, "correctWords": 4, "resultId": 7}
        parsed = LeaderboardEntry.from_payload(summary)
        assert parsed.time_taken is None
        assert parsed.class_name == "9B"
        assert parsed.result_id == 7


class TestStats:
    def test_summary(self):
        stats = summarize([entry("a", 40, 90), entry("b", 51, 85)])
        assert stats.to_payload() == {
            "participants": 2,
            "averageWpm": 46,
            "averageAccuracy": 88,
            "highestWpm": 51,
            "lowestWpm": 40,
        }

    def test_empty(self):
        assert summarize([]).participants == 0
        assert summarize([]).average_wpm == 0
