import os

import uvicorn

from repocomments_backend.log_config import configure_module_logging, setup_logging, uvicorn_log_config

if __name__ == "__main__":
    setup_logging()
    ws_level = configure_module_logging()

    # Default to "info" to always show HTTP requests unless explicitly set otherwise
    uvicorn_log_level = os.environ.get("UVICORN_LOG_LEVEL", "info").lower()

    print(f"Starting server with WebSocket log level: {ws_level}, Uvicorn log level: {uvicorn_log_level}")

    uvicorn.run(
        "repocomments_backend.server:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "8000")),
        log_config=uvicorn_log_config(uvicorn_log_level),
        reload=os.environ.get("DEBUG_MODE", "development") != "production",
        workers=1
    )
