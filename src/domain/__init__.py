"""Domain layer for the agent playground.

Contains:
- enums/: Message roles, tool call status, HTTP methods
- models/: Sessions, messages, agents, tools, authorizations, provider config
- repositories/: Abstract storage interface
"""
