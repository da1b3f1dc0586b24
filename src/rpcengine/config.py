import json
from pathlib import Path

from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Host-level settings of a :class:`~rpcengine.server.Server`."""

    allowed_hosts: list[str] = Field(default_factory=list)
    """Client addresses allowed to call the server. Empty means everyone."""

    users: dict[str, str] = Field(default_factory=dict)
    """Accepted username/password pairs. Empty disables authentication."""

    authentication_header: str | None = None
    """Header carrying base64 ``user:password`` instead of ``Authorization``."""

    concurrent_batches: bool = True
    """Evaluate the elements of a batch concurrently."""

    @classmethod
    def from_file(cls, path: str | Path) -> "ServerConfig":
        with open(path) as file:
            return cls.model_validate(json.load(file))
