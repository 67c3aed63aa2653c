"""
Subcommand implementations.

Each module exposes ``async def run(args, context) -> Outcome``.
"""
