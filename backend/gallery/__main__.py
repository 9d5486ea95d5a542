"""Run the gallery service with uvicorn: ``python -m gallery``."""
import uvicorn

from gallery.config import get_config

if __name__ == "__main__":
    config = get_config()
    uvicorn.run(
        "gallery.main:app",
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level,
    )
