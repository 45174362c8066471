from notegen.db import PreferenceStore


def test_get_before_initialize_returns_default(tmp_path):
    store = PreferenceStore(tmp_path / "nested" / "prefs.db")
    assert store.get("engine", "remote") == "remote"


def test_set_is_an_upsert(tmp_path):
    store = PreferenceStore(tmp_path / "prefs.db")
    store.set("engine", "local")
    store.set("engine", "remote")
    assert store.get("engine") == "remote"
    with store.get_connection() as conn:
        rows = conn.execute("SELECT key, value, updated FROM preferences").fetchall()
    assert len(rows) == 1
    assert rows[0][2]


def test_initialize_is_idempotent(tmp_path):
    store = PreferenceStore(tmp_path / "prefs.db")
    store.initialize()
    store.set("engine", "local")
    store.initialize()
    assert store.get("engine") == "local"
