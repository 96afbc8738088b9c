"""natfwd - automatic gateway port forwarding."""

from __future__ import annotations

from natfwd.cli.main import main

if __name__ == "__main__":
    main()
