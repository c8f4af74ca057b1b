"""Language model access."""

from .client import AgentCompletionClient, CompletionClient, parse_json_reply

__all__ = ["AgentCompletionClient", "CompletionClient", "parse_json_reply"]
