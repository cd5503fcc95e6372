"""
Integration Tests - action entry points and the HTTP surface

Actions run end to end against in-memory document stores and session cache,
with the conversation engine and Slack API mocked.

Test files:
- test_converse_action.py: direct conversational turns
- test_slack_actions.py: Slack events, slash commands and bot registration
- test_webhook_server.py: FastAPI routes and secrets loading
"""
