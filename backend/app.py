import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from backend.routes import router
from backend.runtime import ChatRuntime, build_runtime

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(
    data_dir: Path | None = None,
    runtime: ChatRuntime | None = None,
    run_poller: bool = True,
) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    runtime = runtime or build_runtime(resolved)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if run_poller:
            runtime.poller.start()
        yield
        await runtime.poller.stop()

    app = FastAPI(title="Persona Chat", lifespan=lifespan)
    app.state.runtime = runtime
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
