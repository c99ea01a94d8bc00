"""HTTP merge endpoints."""

from __future__ import annotations

import pytest

pytest.importorskip("markdown_it")

TEMPLATE = "## Features\n\n- Feature A\n- Feature B\n"
DESTINATION = "# Project\n\n## Features\n\n- Old Feature\n"


def test_merge_returns_content_and_stats(client):
    response = client.post(
        "/api/merge",
        json={"template": TEMPLATE, "destination": DESTINATION, "add_template_only_nodes": True},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["content"].endswith("- Old Feature\n\n- Feature A\n- Feature B\n")
    assert payload["stats"]["nodes_added"] == 1
    assert payload["frozen_blocks"] == []


def test_merge_reports_frozen_blocks(client):
    destination = (
        "# Doc\n\n<!-- notes:freeze local -->\n\nMine.\n\n<!-- notes:unfreeze -->\n"
    )

    response = client.post(
        "/api/merge",
        json={"template": "# Doc\n\nTheirs.\n", "destination": destination, "freeze_token": "notes"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["content"] == destination
    assert payload["frozen_blocks"] == [{"start_line": 3, "end_line": 7, "reason": "local"}]


def test_merge_with_table_matching(client):
    template = "| Name | Age |\n| - | - |\n| Alice | 30 |\n| Bob | 25 |\n"
    destination = "| Name | Age |\n| - | - |\n| Alice | 31 |\n| Bob | 25 |\n| Carol | 40 |\n"

    response = client.post(
        "/api/merge",
        json={
            "template": template,
            "destination": destination,
            "preference": "template",
            "match_tables": True,
        },
    )

    assert response.status_code == 200
    assert response.json()["content"] == template


def test_unknown_preference_is_a_bad_request(client):
    response = client.post(
        "/api/merge",
        json={"template": "a", "destination": "b", "preference": "newest"},
    )

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "invalid_configuration"
    assert detail["errors"]


def test_oversized_documents_are_rejected(client):
    response = client.post(
        "/api/merge", json={"template": "x" * 5000, "destination": "y"}
    )

    assert response.status_code == 413
    assert response.json()["detail"]["code"] == "document_too_large"


def test_section_merge(client):
    destination = "# Doc\n\n## Install\n\nOld step.\n\n## Usage\n\nUse it.\n"

    response = client.post(
        "/api/merge/section",
        json={
            "template": "## Install\n\nNew step.\n",
            "destination": destination,
            "anchor": "## Install",
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["has_section"] is True
    assert payload["changed"] is True
    assert "Old step.\n\nNew step.\n\n## Usage" in payload["content"]


def test_section_merge_missing_anchor_appends(client):
    response = client.post(
        "/api/merge/section",
        json={
            "template": "## Extra\n",
            "destination": "# Doc\n",
            "anchor": "Extra",
            "when_missing": "append",
        },
    )

    assert response.json()["content"] == "# Doc\n\n## Extra\n"


def test_section_merge_rejects_bad_regex(client):
    response = client.post(
        "/api/merge/section",
        json={"template": "x", "destination": "y", "anchor": "(", "anchor_is_regex": True},
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "invalid_anchor"
