"""
CLI entry point, when used as a module: `python -m dynakube`.
"""
from dynakube import cli

if __name__ == '__main__':
    cli.main()
