"""Allow ``python -m graphql_sentinel``."""

from graphql_sentinel.cli import main

if __name__ == "__main__":
    main()
