"""HTTP and MCP surfaces for memlink."""
