"""Allow running OpsAgent with python -m opsagent."""

from .cli import main

if __name__ == "__main__":
    main()
