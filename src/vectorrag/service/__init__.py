"""Service layer: storage backends and the MCP tool server."""
