"""Control a serial fan controller and expose it over MCP."""

__version__ = "0.1.0"
