"""Entry point for running the scheduler via python -m refwatch_agent"""

import sys

if sys.version_info < (3, 10):
    print(
        f"refwatch requires Python 3.10+; found {sys.version.split()[0]}",
        file=sys.stderr,
    )
    sys.exit(1)

from refwatch.cli import main

if __name__ == "__main__":
    main(["watch", *sys.argv[1:]])
