# run_dev.py

import uvicorn

from tmd_app.config import load_settings


def main():
    settings = load_settings()
    # same as: uvicorn api.main:app --reload
    uvicorn.run(
        "api.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
