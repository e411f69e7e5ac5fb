"""Allow ``python -m certenroll``."""

from certenroll.cli.main import main

main()
