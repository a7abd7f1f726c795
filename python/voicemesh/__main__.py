"""Run the voicemesh signaling server with uvicorn."""

from __future__ import annotations

import uvicorn

from voicemesh.config import ServerConfig, configure_logging
from voicemesh.server import VoiceMeshServer


def main() -> None:
    config = ServerConfig.from_env()
    configure_logging(config.log_level)

    server = VoiceMeshServer(config)
    uvicorn.run(server.app, host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
