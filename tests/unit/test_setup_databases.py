"""
Unit tests for tools/setup_databases.py
"""

import os
import sys
from pathlib import Path

import pytest
from unittest.mock import AsyncMock, patch

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "tools"))

import setup_databases  # noqa: E402


@pytest.mark.unit
class TestUserViews:

    def test_one_view_per_filter(self):
        views = setup_databases.user_views(["by_slack_id", "by_email"])

        assert set(views) == {"by_slack_id", "by_email"}
        assert "doc.slack_id" in views["by_slack_id"]["map"]
        assert "emit(doc.email, null)" in views["by_email"]["map"]
        assert "'user-context'" in views["by_email"]["map"]


@pytest.mark.unit
class TestSetup:

    @pytest.mark.asyncio
    async def test_creates_databases_and_design_documents(self):
        created = []

        def make_client(base_url, database, *args, **kwargs):
            client = AsyncMock()
            client.database = database
            client.create_database.return_value = True
            created.append(client)
            return client

        with patch.dict(os.environ, {}, clear=True), \
                patch.object(setup_databases, "DocumentStoreClient", side_effect=make_client):
            await setup_databases.setup(["by_slack_id"])

        users, bots = created
        users.put_design_document.assert_awaited_once()
        name, views = users.put_design_document.call_args.args
        assert name == "users"
        assert list(views) == ["by_slack_id"]
        bots.put_design_document.assert_awaited_once_with("bots", setup_databases.BOT_VIEWS)
        users.close.assert_awaited_once()
        bots.close.assert_awaited_once()


@pytest.mark.unit
def test_bot_view_is_keyed_on_document_id():
    view = setup_databases.BOT_VIEWS["by_team_id"]["map"]

    assert "emit(doc._id, null)" in view
    assert "registration.team_id" not in view
