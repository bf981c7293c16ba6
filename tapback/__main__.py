from tapback.cli.commands import app

app()
