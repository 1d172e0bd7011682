"""Allow ``python -m sitechat.cli`` execution."""

from sitechat.cli.index import main

main()
