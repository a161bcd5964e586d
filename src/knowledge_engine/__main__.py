"""Entry point for the knowledge-engine MCP server."""

from knowledge_engine.server import create_server


def main() -> None:
    """Run the knowledge-engine MCP server."""
    server = create_server()
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
