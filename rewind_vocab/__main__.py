"""Package entry point for ``python -m rewind_vocab``.

WHY: Users run the ledger API as ``python -m rewind_vocab serve`` and the
offline tools (stats, export, session control, VTT ingest) through the same
entry point.

HOW: Delegates to the CLI's main(), which dispatches on the subcommand.
"""

from rewind_vocab.cli import main

if __name__ == "__main__":
    main()
