"""Core building blocks shared by the engine and the CLI."""
