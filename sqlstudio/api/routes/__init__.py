from sqlstudio.api.routes import ai_stream, connections, health, tools

__all__ = ["ai_stream", "connections", "health", "tools"]
