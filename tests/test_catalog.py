import json

from coursebot.catalog import TaskCatalog

def _write(path, payload):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")

def test_tasks_fall_back_to_default_language(tmp_path):
    _write(
        tmp_path / "ru" / "a1.json",
        {"tasks": [{"id": 1, "lesson_id": 1, "type": "write", "question": "Переведите", "num": 1}]},
    )
    catalog = TaskCatalog(tmp_path, default_lang="ru")
    tasks = catalog.fetch_tasks("en", "a1")
    assert [t.id for t in tasks] == ["1"]
    assert tasks[0].prompt == "Переведите"

def test_requested_language_wins(tmp_path):
    _write(tmp_path / "ru" / "a1.json", [{"id": "r", "lesson_id": 1, "type": "read", "question": "ru"}])
    _write(tmp_path / "en" / "a1.json", [{"id": "e", "lesson_num": 2, "type": "write", "prompt": "en", "num": 1}])
    catalog = TaskCatalog(tmp_path, default_lang="ru")
    tasks = catalog.fetch_tasks("en", "a1")
    assert [(t.id, t.lesson_num, t.prompt) for t in tasks] == [("e", 2, "en")]
    assert catalog.total_lessons("en", "a1") == 2

def test_missing_course_has_no_tasks(tmp_path):
    catalog = TaskCatalog(tmp_path)
    assert catalog.fetch_tasks("en", "nope") == []
    assert catalog.total_lessons("en", "nope") == 0

def test_broken_file_is_logged(tmp_path, caplog):
    path = tmp_path / "ru" / "a1.json"
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")
    catalog = TaskCatalog(tmp_path)
    assert catalog.fetch_tasks("ru", "a1") == []
    assert "failed_to_load_tasks" in caplog.text

def test_cache_is_cleared(tmp_path):
    catalog = TaskCatalog(tmp_path)
    assert catalog.fetch_tasks("ru", "a1") == []
    _write(tmp_path / "ru" / "a1.json", [{"id": "x", "lesson_id": 1, "type": "write", "num": 1}])
    assert catalog.fetch_tasks("ru", "a1") == []
    catalog.clear_cache()
    assert len(catalog.fetch_tasks("ru", "a1")) == 1
