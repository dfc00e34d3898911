import uvicorn

from transaction_analyzer.app import app
from transaction_analyzer.logger import get_logging_config

__all__ = ["app"]


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000, log_config=get_logging_config())
