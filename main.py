# main.py

import logging

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - [%(levelname)s] - %(message)s'
)

from api.router import run_api_server


if __name__ == "__main__":
    run_api_server()
