"""
Serverless actions bridging Slack and Watson Conversation.

Each module exposes an async ``main(args)`` returning
``{"headers", "statusCode", "body"}`` and a synchronous ``handler(args)``.
"""
