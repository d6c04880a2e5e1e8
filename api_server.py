#!/usr/bin/env python
"""
HTTP server for the account auth service
"""
import os
import sys
from pathlib import Path

import uvicorn

# Allow running from a checkout without installing the package
src_path = str(Path(__file__).parent / "src")
if os.path.exists(src_path) and src_path not in sys.path:
    sys.path.insert(0, src_path)

from account_auth.app import create_app  # noqa: E402
from account_auth.config import get_config
from account_auth.logging_config import setup_logging

config = get_config()
setup_logging(env=config.ENV, log_level=config.LOG_LEVEL)

app = create_app(config)


def main():
    uvicorn.run(app, host="0.0.0.0", port=config.PORT, log_config=None)


if __name__ == "__main__":
    main()
