import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

VERSION = "v2"
TRACK = "canary"
MESSAGE = "Hello from the CANARY version (v2)"
PORT = 8080


class StdoutHandler(logging.StreamHandler):
    """Writes to the sys.stdout current at emit time."""

    def __init__(self) -> None:
        super().__init__(sys.stdout)

    @property
    def stream(self):
        return sys.stdout

    @stream.setter
    def stream(self, value) -> None:
        pass


logger = logging.getLogger("responder")
if not logger.handlers:
    _handler = StdoutHandler()
    _handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(_handler)
    logger.setLevel(logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("%s responder (%s) ready on port %d", TRACK, VERSION, PORT)
    yield


app = FastAPI(title=f"myapp {TRACK}", version=VERSION, lifespan=lifespan)


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    return MESSAGE


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=PORT)
