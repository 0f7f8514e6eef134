from boilerplate.cli import cli

cli()
