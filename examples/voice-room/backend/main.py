"""
Voice Room - Backend

Runs the voicemesh signaling server next to an app-specific route.
Run with: python main.py

Rooms live in memory only; restarting the process drops them.
"""

import os

from voicemesh import ServerConfig, VoiceMeshServer, configure_logging

config = ServerConfig.from_env(
    client_url=os.environ.get("CLIENT_URL", "http://localhost:5173"),
    room_max_age=float(os.environ.get("ROOM_MAX_AGE", str(24 * 60 * 60))),
)
configure_logging(config.log_level)

server = VoiceMeshServer(config)

# Create FastAPI app
app = server.app


@app.get("/rooms/{room_id}")
async def room_info(room_id: str):
    """Report whether a room code is live and how full it is."""
    code = server.registry.codes.normalize(room_id)
    room = server.registry.get_room(code) if code else None
    if room is None:
        return {"exists": False}
    return {
        "exists": True,
        "members": room.member_count,
        "capacity": server.registry.max_members,
    }


if __name__ == "__main__":
    import uvicorn
    bind_host = os.environ.get("BIND_HOST", "127.0.0.1")
    bind_port = int(os.environ.get("BIND_PORT", "3001"))
    uvicorn.run(app, host=bind_host, port=bind_port)
