"""github-cli-mcp: GitHub automation and Copilot CLI tools over MCP."""

__version__ = "2.0.0"
