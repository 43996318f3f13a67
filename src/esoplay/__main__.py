from esoplay.cli.__main__ import app

app()
