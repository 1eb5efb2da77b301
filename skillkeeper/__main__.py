from skillkeeper.main import app

app()
