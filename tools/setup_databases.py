#!/usr/bin/env python3
"""Create the users and bots databases and the views the actions query"""
import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from actions.config import configure_logging, load_config
from actions.slack_common import BOTS_DESIGN_DOC, BY_TEAM_ID_VIEW
from clients.document_store_client import DocumentStoreClient
from clients.session_context_manager import USER_CONTEXT_TYPE, lookup_field

# Registrations are stored under their team id
BOT_VIEWS = {
    BY_TEAM_ID_VIEW: {
        "map": "function (doc) { if (doc.type === 'bot-registration') { emit(doc._id, null); } }"
    }
}


def user_views(filters):
    """One by_<field> view per external lookup filter"""
    views = {}
    for filter_kind in filters:
        attr = lookup_field(filter_kind)
        views[filter_kind] = {
            "map": f"function (doc) {{ if (doc.type === '{USER_CONTEXT_TYPE}' && doc.{attr}) "
            f"{{ emit(doc.{attr}, null); }} }}"
        }
    return views


async def setup(filters):
    config = load_config()
    users = DocumentStoreClient(config.cloudant_url, config.users_db)
    bots = DocumentStoreClient(config.cloudant_url, config.bots_db)
    try:
        for db in (users, bots):
            created = await db.create_database()
            print(f"{db.database}: {'created' if created else 'already exists'}")

        await users.put_design_document(config.users_design_doc, user_views(filters))
        print(f"{users.database}: _design/{config.users_design_doc} {sorted(filters)}")

        await bots.put_design_document(BOTS_DESIGN_DOC, BOT_VIEWS)
        print(f"{bots.database}: _design/{BOTS_DESIGN_DOC} [{BY_TEAM_ID_VIEW}]")
    finally:
        await users.close()
        await bots.close()


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--filter",
        action="append",
        default=None,
        help="external user lookup filter to index (default: by_slack_id)",
    )
    args = parser.parse_args()

    configure_logging()
    asyncio.run(setup(args.filter or ["by_slack_id"]))


if __name__ == "__main__":
    main()
