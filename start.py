import logging
import os
import subprocess


def run_fastapi():
    """Run the FastAPI gateway with uvicorn."""
    log_level = os.getenv("LOG_LEVEL", "info").lower()
    logging.basicConfig(level=log_level.upper())
    subprocess.run(
        [
            "uvicorn",
            "app.main:app",
            "--host",
            os.getenv("HOST", "0.0.0.0"),
            "--port",
            str(os.getenv("PORT", 8000)),
            "--proxy-headers",
            "--log-level",
            log_level,
            "--workers",
            str(os.getenv("UVICORN_WORKERS", 1)),
        ],
        check=True,
    )


if __name__ == "__main__":
    print("[start] launching uvicorn...", flush=True)
    run_fastapi()
