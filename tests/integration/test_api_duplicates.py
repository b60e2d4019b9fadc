"""
Integration tests for duplicate analysis and optimization.
"""

import os


def _duplicate(make_plugin, editor_dirs, **kwargs):
    make_plugin(editor_dirs["vscode"], **kwargs)
    return make_plugin(editor_dirs["cursor"], **kwargs)


def test_no_duplicates(test_client):
    data = test_client.get("/api/duplicates").json()

    assert data["report"]["groups"] == []
    assert data["suggestions"] == []


def test_duplicate_report(test_client, make_plugin, editor_dirs):
    _duplicate(make_plugin, editor_dirs)

    data = test_client.get("/api/duplicates").json()

    group = data["report"]["groups"][0]
    assert group["plugin_unique_id"] == "ms-python.python"
    assert group["duplicate_count"] == 2
    assert data["report"]["total_duplicates"] == 1
    assert any("can free" in s for s in data["suggestions"])


def test_plan_then_execute(test_client, make_plugin, editor_dirs):
    cursor_copy = _duplicate(make_plugin, editor_dirs)

    plan = test_client.post("/api/duplicates/plan", json={"cleanup": True}).json()["plan"]
    assert [a["kind"] for a in plan["actions"]] == ["migrate", "cleanup"]
    assert plan["estimated_space_saved"] > 0

    response = test_client.post("/api/duplicates/optimize", json={"plan": plan})

    assert response.status_code == 200
    result = response.json()["result"]
    assert result["completed"] == 2
    assert result["failures"] == []
    assert os.path.islink(cursor_copy)
    assert os.path.islink(editor_dirs["vscode"] / cursor_copy.name)
    assert result["space_saved"] > 0

    links = test_client.get("/api/editors/cursor/plugins").json()["plugins"]
    assert links[0]["source"] == "linked"


def test_version_conflicts_need_opt_in(test_client, make_plugin, editor_dirs):
    make_plugin(editor_dirs["vscode"], version="1.0.0")
    make_plugin(editor_dirs["cursor"], version="2.0.0")

    default = test_client.post("/api/duplicates/plan", json={}).json()["plan"]
    included = test_client.post(
        "/api/duplicates/plan", json={"include_version_conflicts": True}
    ).json()["plan"]

    assert default["actions"] == []
    assert len(included["actions"]) == 1


def test_optimize_partial_failure(test_client, make_plugin, editor_dirs, tmp_path):
    _duplicate(make_plugin, editor_dirs)
    plan = test_client.post("/api/duplicates/plan", json={}).json()["plan"]
    good = plan["actions"][0]
    bad = {**good, "source_path": str(tmp_path / "missing")}

    response = test_client.post(
        "/api/duplicates/optimize", json={"plan": {"actions": [bad, good]}}
    )

    assert response.status_code == 207
    data = response.json()
    assert data["result"]["completed"] == 1
    assert data["result"]["failures"][0]["index"] == 0
    assert data["error"]["code"] == "batch_partial_failure"
    assert len(data["error"]["details"]) == 1


def test_optimize_without_plan_computes_one(test_client, make_plugin, editor_dirs):
    cursor_copy = _duplicate(make_plugin, editor_dirs)

    result = test_client.post("/api/duplicates/optimize", json={}).json()["result"]

    assert result["completed"] == 1
    assert os.path.islink(cursor_copy)
