from __future__ import annotations

import sys

from policydesk.cli import main as cli_main
from policydesk.exceptions import PolicyDeskError


def main() -> None:
    try:
        cli_main()
    except PolicyDeskError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print()
        sys.exit(130)


if __name__ == "__main__":
    main()
