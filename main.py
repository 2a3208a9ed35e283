"""Persona Chat — dev launcher. Starts the API server with auto-reload."""

import argparse
import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "13013"))


def main():
    parser = argparse.ArgumentParser(description="Persona Chat dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--demo", action="store_true",
                        help="Reset personas and create the demo group chat")
    parser.add_argument("--log-level", default="info",
                        help="Logging level (default: info)")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    # The app reads DATA_DIR on import, so export it before uvicorn loads it
    data_dir = (args.data_dir or ROOT / "data").resolve()
    os.environ["DATA_DIR"] = str(data_dir)

    if args.demo:
        from persona_chat.demo import create_demo_data
        from persona_chat.storage import Storage
        create_demo_data(Storage(data_dir))
        print(f"Demo data written to {data_dir}")

    print(f"Starting backend on http://localhost:{PORT} ...")
    uvicorn.run(
        "backend.app:app",
        host=HOST,
        port=PORT,
        reload=True,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
