"""Agent framework integrations.

Available integrations:
- sqlwarden.integrations.mcp - MCP (Model Context Protocol) server
"""
