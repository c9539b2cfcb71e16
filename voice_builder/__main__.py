from voice_builder.cli import app

app()
