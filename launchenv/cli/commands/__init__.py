"""launchenv CLI subcommands."""
