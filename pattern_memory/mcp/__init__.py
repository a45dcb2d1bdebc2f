"""MCP server exposing Pattern memory tools over stdio."""
