"""Allow ``python -m ragdocs.cli`` execution."""

from ragdocs.cli.manage import main

main()
