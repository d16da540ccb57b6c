"""
SSH bootstrap and MCP tools.

This package provides the Paramiko-based executor, agent transfer and
bootstrap launcher, the live agent channel, and the MCP tools that expose
node launches.
"""
