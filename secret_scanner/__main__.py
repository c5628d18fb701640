import sys

from secret_scanner.cli import main

if __name__ == "__main__":
    sys.exit(main())
