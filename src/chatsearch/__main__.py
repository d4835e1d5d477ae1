"""Run the API with uvicorn: ``python -m chatsearch``."""

from __future__ import annotations

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "chatsearch.app:create_app",
        factory=True,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
