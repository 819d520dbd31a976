"""Entry point for running the CLI as module: python -m swapvault"""

import sys

# Load .env file before importing anything else
from dotenv import load_dotenv
load_dotenv()

from swapvault.cli import main

if __name__ == "__main__":
    sys.exit(main())
