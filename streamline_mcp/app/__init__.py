from streamline_mcp.app.factory import create_app, setup_logging

__all__ = ["create_app", "setup_logging"]
