"""
Clients for the document store, session cache, conversation engine and Slack.
"""
